from fastapi import Depends, HTTPException, status

from amms.modules.auth.deps import RequireServiceOrUser, UserContext
from amms.modules.auth.models import ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN

PUSH_SENDER_ROLES = {ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN}


def IsAdmin(user: UserContext) -> bool:
    return user.Role == ROLE_ADMIN


def CanSendPush(user: UserContext) -> bool:
    if user.IsService:
        return True
    return user.Role in PUSH_SENDER_ROLES


def CanAccessNotification(user: UserContext, notification_user_id: str) -> bool:
    if user.Id == notification_user_id:
        return True
    return IsAdmin(user)


def RequirePushSender():
    def _checker(user: UserContext = Depends(RequireServiceOrUser)) -> UserContext:
        if not CanSendPush(user):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return user

    return _checker
