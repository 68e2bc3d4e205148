import logging
import re

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from amms.modules.auth.deps import NowUtc
from amms.modules.notifications.models import DeviceToken

logger = logging.getLogger("notifications.cleanup")

INVALID_TOKEN_ERRORS = ("InvalidRegistration", "NotRegistered")
_TOKEN_INDEX_PATTERN = re.compile(r"Token (\d+):")


def ExtractInvalidTokenIndices(errors: list[str]) -> list[int]:
    """Indices of tokens the provider reported as permanently invalid.

    The mapping is positional: it trusts that ``Token <n>`` lines up with the
    token list the dispatch was given.
    """
    indices: list[int] = []
    for error in errors or []:
        if not any(marker in error for marker in INVALID_TOKEN_ERRORS):
            continue
        match = _TOKEN_INDEX_PATTERN.search(error)
        if match:
            indices.append(int(match.group(1)))
    return indices


def _ExtractReason(error: str) -> str:
    _, _, reason = error.partition(":")
    return (reason.strip() or error.strip())[:255]


def SelectInvalidTokens(tokens: list[str], errors: list[str]) -> dict[str, str]:
    selected: dict[str, str] = {}
    for error in errors or []:
        indices = ExtractInvalidTokenIndices([error])
        if not indices:
            continue
        index = indices[0]
        if 0 <= index < len(tokens):
            selected.setdefault(tokens[index], _ExtractReason(error))
    return selected


def DeactivateInvalidTokens(db: Session, tokens: list[str], errors: list[str]) -> int:
    invalid = SelectInvalidTokens(tokens, errors)
    if not invalid:
        return 0

    now = NowUtc()
    try:
        records = (
            db.query(DeviceToken)
            .filter(
                DeviceToken.Token.in_(list(invalid)),
                DeviceToken.IsActive == True,  # noqa: E712
            )
            .all()
        )
        for record in records:
            record.IsActive = False
            record.LastError = invalid.get(record.Token)
            record.UpdatedAt = now
            db.add(record)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to deactivate invalid tokens count=%s", len(invalid))
        return 0

    logger.info("deactivated invalid tokens count=%s", len(records))
    return len(records)
