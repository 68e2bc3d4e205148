from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from amms.modules.auth.models import User
from amms.modules.notifications.categories import (
    PREFERENCE_FIELDS,
    NotificationType,
    ParseNotificationType,
)
from amms.modules.notifications.models import DeviceToken, PushSettings

logger = logging.getLogger("notifications.audience")


def _CleanStrings(values) -> list[str]:
    cleaned = []
    for value in values or []:
        text = str(value).strip() if value is not None else ""
        if text:
            cleaned.append(text)
    return cleaned


@dataclass
class AudienceSelector:
    tokens: list[str] = field(default_factory=list)
    user_ids: list[str] = field(default_factory=list)
    roles: list[int] = field(default_factory=list)
    departments: list[str] = field(default_factory=list)
    broadcast: bool = False

    @classmethod
    def Build(
        cls,
        *,
        token: str | None = None,
        tokens: list[str] | None = None,
        user_ids: list[str] | None = None,
        roles: list[int] | None = None,
        departments: list[str] | None = None,
        broadcast: bool = False,
    ) -> "AudienceSelector":
        return cls(
            tokens=_CleanStrings([token, *(tokens or [])]),
            user_ids=_CleanStrings(user_ids),
            roles=[int(role) for role in (roles or []) if role is not None],
            departments=_CleanStrings(departments),
            broadcast=bool(broadcast),
        )

    def HasStoreFilter(self) -> bool:
        # Empty lists are "not provided"; only an explicit broadcast widens to every token.
        return bool(self.user_ids or self.roles or self.departments or self.broadcast)

    def IsEmpty(self) -> bool:
        return not self.tokens and not self.HasStoreFilter()


def _PreferenceAllows(category: NotificationType):
    no_settings = PushSettings.Id.is_(None)
    field_name = PREFERENCE_FIELDS.get(category)
    if not field_name:
        return or_(no_settings, PushSettings.Enabled == True)  # noqa: E712
    column = getattr(PushSettings, field_name)
    return or_(
        no_settings,
        and_(PushSettings.Enabled == True, column == True),  # noqa: E712
    )


def _QueryStoreTokens(
    db: Session,
    selector: AudienceSelector,
    category: NotificationType | None,
) -> list[str]:
    query = (
        db.query(DeviceToken.Token)
        .join(User, User.Id == DeviceToken.UserId)
        .filter(DeviceToken.IsActive == True)  # noqa: E712
        .filter(User.IsActive == True)  # noqa: E712
    )
    if selector.user_ids:
        query = query.filter(DeviceToken.UserId.in_(selector.user_ids))
    if selector.roles:
        query = query.filter(User.Role.in_(selector.roles))
    if selector.departments:
        query = query.filter(User.Department.in_(selector.departments))
    if category is not None:
        query = query.outerjoin(PushSettings, PushSettings.UserId == DeviceToken.UserId)
        query = query.filter(_PreferenceAllows(category))

    return [row.Token for row in query.order_by(DeviceToken.Id).all()]


def _DropKnownInactive(db: Session, tokens: list[str]) -> list[str]:
    if not tokens:
        return []
    rows = (
        db.query(DeviceToken.Token, DeviceToken.IsActive)
        .filter(DeviceToken.Token.in_(set(tokens)))
        .all()
    )
    active_by_token: dict[str, bool] = {}
    for row in rows:
        active_by_token[row.Token] = active_by_token.get(row.Token, False) or bool(row.IsActive)
    # Tokens the store has never seen pass through untouched.
    return [token for token in tokens if active_by_token.get(token, True)]


def ResolveAudienceTokens(
    db: Session,
    selector: AudienceSelector,
    notification_type: str | NotificationType | None = None,
) -> list[str]:
    if selector.IsEmpty():
        logger.info("audience selector is empty; no recipients")
        return []

    category = ParseNotificationType(notification_type)
    explicit = _DropKnownInactive(db, selector.tokens)
    stored = _QueryStoreTokens(db, selector, category) if selector.HasStoreFilter() else []

    tokens = list(dict.fromkeys([*explicit, *stored]))
    logger.info(
        "audience resolved tokens=%s explicit=%s stored=%s category=%s",
        len(tokens),
        len(explicit),
        len(stored),
        category.value if category else None,
    )
    return tokens


def ResolveActiveUserIds(
    db: Session,
    *,
    roles: list[int] | None = None,
    departments: list[str] | None = None,
    exclude_user_ids: set[str] | None = None,
) -> list[str]:
    query = db.query(User.Id).filter(User.IsActive == True)  # noqa: E712
    if roles:
        query = query.filter(User.Role.in_(roles))
    if departments:
        query = query.filter(User.Department.in_(departments))
    excluded = exclude_user_ids or set()
    return [row.Id for row in query.order_by(User.Id).all() if row.Id not in excluded]
