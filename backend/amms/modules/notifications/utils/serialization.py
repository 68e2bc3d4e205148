import json


def SerializeJson(value) -> str | None:
    if value is None:
        return None
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def ParseJson(value: str | None):
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return None


def StringifyData(data: dict | None) -> dict[str, str]:
    """Provider data payloads only carry string values; None entries are dropped.

    Non-string values are JSON encoded so the client can parse them back.
    """
    if not data:
        return {}
    return {
        str(key): value if isinstance(value, str) else SerializeJson(value)
        for key, value in data.items()
        if value is not None
    }
