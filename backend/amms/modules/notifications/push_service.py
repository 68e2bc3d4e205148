import logging
import os
from dataclasses import dataclass, field

import httpx
from sqlalchemy.orm import Session

from amms.modules.auth.deps import NowUtc
from amms.modules.notifications.models import DeviceToken
from amms.modules.notifications.utils.serialization import SerializeJson, StringifyData

logger = logging.getLogger("notifications.push")

FCM_BATCH_LIMIT = 1000
DEFAULT_FCM_ENDPOINT = "https://fcm.googleapis.com/fcm/send"
DEFAULT_ICON_PATH = "/icon-192x192.png"
DEFAULT_BADGE_PATH = "/icon-72x72.png"
DEVICE_TYPES = {"web", "android", "ios"}
MIN_TOKEN_LENGTH = 10


class PushConfigurationError(RuntimeError):
    pass


@dataclass(frozen=True)
class FcmConfig:
    server_key: str
    endpoint: str = DEFAULT_FCM_ENDPOINT
    timeout_seconds: float = 10.0
    icon_path: str = DEFAULT_ICON_PATH
    badge_path: str = DEFAULT_BADGE_PATH


@dataclass
class FcmMessage:
    title: str
    body: str
    image: str | None = None
    data: dict[str, str] = field(default_factory=dict)
    priority: str = "high"
    ttl: int | None = None
    collapse_key: str | None = None


@dataclass
class FcmResult:
    success: int = 0
    failure: int = 0
    errors: list[str] = field(default_factory=list)


def _ReadFloatEnv(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def LoadFcmConfig() -> FcmConfig:
    server_key = os.getenv("FCM_SERVER_KEY", "").strip()
    if not server_key:
        raise PushConfigurationError("FCM_SERVER_KEY is not configured.")

    return FcmConfig(
        server_key=server_key,
        endpoint=os.getenv("FCM_ENDPOINT", "").strip() or DEFAULT_FCM_ENDPOINT,
        timeout_seconds=_ReadFloatEnv("FCM_TIMEOUT_SECONDS", 10.0),
        icon_path=os.getenv("PUSH_ICON_PATH", "").strip() or DEFAULT_ICON_PATH,
        badge_path=os.getenv("PUSH_BADGE_PATH", "").strip() or DEFAULT_BADGE_PATH,
    )


def ChunkTokens(tokens: list[str], size: int = FCM_BATCH_LIMIT) -> list[list[str]]:
    if size <= 0:
        raise ValueError("Chunk size must be positive.")
    return [tokens[index:index + size] for index in range(0, len(tokens), size)]


def _BuildFcmPayload(chunk: list[str], message: FcmMessage, config: FcmConfig) -> dict:
    data = StringifyData(message.data)
    click_action = data.get("url") or "/"

    notification: dict[str, str] = {
        "title": message.title,
        "body": message.body,
        "icon": config.icon_path,
        "badge": config.badge_path,
        "click_action": click_action,
    }
    if message.image:
        notification["image"] = message.image

    payload: dict[str, object] = {
        "registration_ids": chunk,
        "notification": notification,
        "data": {**data, "click_action": data.get("click_action") or click_action},
        "priority": message.priority or "high",
    }
    if message.ttl is not None:
        payload["time_to_live"] = int(message.ttl)
    if message.collapse_key:
        payload["collapse_key"] = message.collapse_key
    return payload


def _ExtractErrorText(response: httpx.Response) -> str:
    text = (response.text or "").strip()
    return text[:500] or (response.reason_phrase or "")


def _ToInt(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _FailChunk(result: FcmResult, chunk: list[str], error: str) -> None:
    result.failure += len(chunk)
    result.errors.append(error)


def _SendChunk(
    client: httpx.Client,
    chunk: list[str],
    offset: int,
    message: FcmMessage,
    config: FcmConfig,
    result: FcmResult,
) -> None:
    payload = _BuildFcmPayload(chunk, message, config)
    try:
        response = client.post(
            config.endpoint,
            json=payload,
            headers={"Authorization": f"key={config.server_key}"},
        )
    except httpx.HTTPError as exc:
        logger.warning("FCM request failed offset=%s size=%s error=%s", offset, len(chunk), exc)
        _FailChunk(result, chunk, f"FCM request failed: {exc}")
        return

    if not response.is_success:
        logger.warning("FCM API error offset=%s size=%s status=%s", offset, len(chunk), response.status_code)
        _FailChunk(result, chunk, f"FCM API error: {response.status_code} - {_ExtractErrorText(response)}")
        return

    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        _FailChunk(result, chunk, "FCM API error: unexpected response body")
        return

    # Counts are bounded by the chunk so sent + failed never exceeds the tokens handed in.
    success = min(max(_ToInt(body.get("success")), 0), len(chunk))
    result.success += success
    result.failure += len(chunk) - success

    items = body.get("results") or []
    for index, item in enumerate(items[: len(chunk)]):
        error = item.get("error") if isinstance(item, dict) else None
        if error:
            result.errors.append(f"Token {offset + index}: {error}")


def SendFcm(
    tokens: list[str],
    message: FcmMessage,
    config: FcmConfig,
    client: httpx.Client | None = None,
) -> FcmResult:
    """Deliver ``message`` to ``tokens`` in provider-sized chunks.

    Failures never raise: a failed chunk counts every token in it as failed and
    adds one error string. Per-token errors are reported as ``Token <index>: <error>``
    where ``<index>`` is the position in ``tokens``.
    """
    result = FcmResult()
    if not tokens:
        return result

    owns_client = client is None
    http_client = client or httpx.Client(timeout=config.timeout_seconds)
    try:
        offset = 0
        for chunk in ChunkTokens(tokens):
            _SendChunk(http_client, chunk, offset, message, config, result)
            offset += len(chunk)
    finally:
        if owns_client:
            http_client.close()

    logger.info(
        "FCM dispatch complete tokens=%s success=%s failure=%s",
        len(tokens),
        result.success,
        result.failure,
    )
    return result


def _NormalizeDeviceType(value: str | None) -> str:
    normalized = (value or "web").strip().lower()
    return normalized if normalized in DEVICE_TYPES else "web"


def RegisterDeviceToken(
    db: Session,
    *,
    user_id: str,
    token: str,
    device_type: str | None = "web",
    device_info: dict | None = None,
) -> DeviceToken:
    normalized_token = (token or "").strip()
    if len(normalized_token) < MIN_TOKEN_LENGTH:
        raise ValueError("Device token is invalid.")

    now = NowUtc()
    record = (
        db.query(DeviceToken)
        .filter(DeviceToken.UserId == user_id, DeviceToken.Token == normalized_token)
        .first()
    )
    if not record:
        record = DeviceToken(UserId=user_id, Token=normalized_token, CreatedAt=now)

    record.DeviceType = _NormalizeDeviceType(device_type)
    record.DeviceInfoJson = SerializeJson(device_info or {})
    record.IsActive = True
    record.LastError = None
    record.LastUsedAt = now
    record.UpdatedAt = now

    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("device token registered user_id=%s device_token_id=%s", user_id, record.Id)
    return record


def UnregisterDeviceToken(db: Session, *, user_id: str, token: str) -> int:
    normalized_token = (token or "").strip()
    if not normalized_token:
        raise ValueError("Device token is required.")

    updated = (
        db.query(DeviceToken)
        .filter(
            DeviceToken.UserId == user_id,
            DeviceToken.Token == normalized_token,
            DeviceToken.IsActive == True,  # noqa: E712
        )
        .update(
            {
                DeviceToken.IsActive: False,
                DeviceToken.UpdatedAt: NowUtc(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return int(updated or 0)
