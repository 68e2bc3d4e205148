import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y"}


class LocalTimeFormatter(logging.Formatter):
    converter = time.localtime


class JsonLineFormatter(LocalTimeFormatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def setup_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_file_path = os.getenv("LOG_FILE_PATH", "/app/logs/amms.log")
    client_log_file_path = os.getenv("CLIENT_LOG_FILE_PATH", "/app/logs/client.log")
    max_bytes = int(os.getenv("LOG_MAX_BYTES", "5000000"))
    backup_count = int(os.getenv("LOG_BACKUP_COUNT", "5"))
    json_enabled = _get_bool(os.getenv("LOG_JSON_ENABLED", "false"))

    os.makedirs(os.path.dirname(log_file_path), exist_ok=True)
    os.makedirs(os.path.dirname(client_log_file_path), exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    if json_enabled:
        formatter = JsonLineFormatter(datefmt="%Y-%m-%dT%H:%M:%S")
    else:
        formatter = LocalTimeFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    service_file_handler = RotatingFileHandler(
        log_file_path, maxBytes=max_bytes, backupCount=backup_count
    )
    service_file_handler.setLevel(log_level)
    service_file_handler.setFormatter(formatter)

    client_file_handler = RotatingFileHandler(
        client_log_file_path, maxBytes=max_bytes, backupCount=backup_count
    )
    client_file_handler.setLevel(log_level)
    client_file_handler.setFormatter(formatter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(service_file_handler)

    # Browser and service-worker logs land in their own file.
    client_logger = logging.getLogger("client")
    client_logger.handlers.clear()
    client_logger.propagate = False
    client_logger.setLevel(log_level)
    client_logger.addHandler(console_handler)
    client_logger.addHandler(client_file_handler)

    logging.getLogger("uvicorn.access").handlers.clear()
    logging.getLogger("httpx").setLevel(logging.WARNING)


def format_client_message(message: str, context: dict | None = None) -> str:
    if not context:
        return message
    payload = {"message": message, "context": context}
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def format_request_line(
    method: str,
    path: str,
    query: str,
    status: int,
    duration_ms: int,
    request_id: str,
) -> str:
    parts = [f"{method} {path}"]
    if query:
        parts.append(f"query={query}")

    if status == 404:
        parts.append("ERROR: endpoint not found")
    elif status >= 500:
        parts.append("ERROR: server error")
    elif status >= 400:
        parts.append("ERROR: client error")
    parts.append(f"status={status}")
    parts.append(f"{duration_ms}ms")
    parts.append(f"request_id={request_id}")
    return " | ".join(parts)
