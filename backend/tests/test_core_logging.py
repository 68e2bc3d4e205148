import json
import logging

from amms.core import logging as core_logging


def test_format_client_message_without_context():
    assert core_logging.format_client_message("hello") == "hello"


def test_format_client_message_with_context():
    message = core_logging.format_client_message("push failed", {"source": "sw"})
    assert json.loads(message) == {"message": "push failed", "context": {"source": "sw"}}


def test_json_line_formatter_emits_one_object():
    formatter = core_logging.JsonLineFormatter(datefmt="%Y-%m-%dT%H:%M:%S")
    record = logging.LogRecord("notifications", logging.INFO, __file__, 1, "sent=%s", (3,), None)
    payload = json.loads(formatter.format(record))
    assert payload["logger"] == "notifications"
    assert payload["level"] == "INFO"
    assert payload["message"] == "sent=3"


def test_setup_logging_writes_service_and_client_files(tmp_path, monkeypatch):
    service_log = tmp_path / "logs" / "amms.log"
    client_log = tmp_path / "logs" / "client.log"
    monkeypatch.setenv("LOG_FILE_PATH", str(service_log))
    monkeypatch.setenv("CLIENT_LOG_FILE_PATH", str(client_log))
    monkeypatch.setenv("LOG_JSON_ENABLED", "true")
    monkeypatch.setenv("LOG_LEVEL", "INFO")

    root_logger = logging.getLogger()
    previous_handlers = list(root_logger.handlers)
    previous_level = root_logger.level
    try:
        core_logging.setup_logging()
        logging.getLogger("notifications").info("dispatch done")
        logging.getLogger("client").info("worker ready")
        for handler in root_logger.handlers + logging.getLogger("client").handlers:
            handler.flush()
    finally:
        for handler in root_logger.handlers + logging.getLogger("client").handlers:
            handler.close()
        root_logger.handlers[:] = previous_handlers
        root_logger.setLevel(previous_level)
        logging.getLogger("client").handlers.clear()
        logging.getLogger("client").propagate = True

    assert json.loads(service_log.read_text().splitlines()[-1])["message"] == "dispatch done"
    assert "worker ready" in client_log.read_text()
    assert "worker ready" not in service_log.read_text()


def test_format_request_line_includes_request_id():
    line = core_logging.format_request_line("POST", "/api/push/send", "", 201, 12, "req-42")
    assert line == "POST /api/push/send | status=201 | 12ms | request_id=req-42"


def test_format_request_line_flags_errors():
    line = core_logging.format_request_line("GET", "/api/missing", "a=1", 404, 3, "req-7")
    assert line == "GET /api/missing | query=a=1 | ERROR: endpoint not found | status=404 | 3ms | request_id=req-7"
