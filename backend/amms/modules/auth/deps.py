import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from amms.db import GetDb
from amms.modules.auth.models import ROLE_ADMIN, User

SERVICE_KEY_HEADER = "X-Service-Key"
SERVICE_USER_ID = "service"


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise RuntimeError(f"Missing required env var: {name}")
    return value


def _decode_access_token(token: str) -> dict:
    secret = _require_env("JWT_SECRET_KEY")
    audience = os.getenv("JWT_AUDIENCE", "").strip() or None
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=audience,
            options={"verify_aud": audience is not None},
        )
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


@dataclass
class UserContext:
    Id: str
    Username: str
    Role: int
    Department: str | None = None
    IsService: bool = False


def RequireAuthenticated(
    request: Request,
    db: Session = Depends(GetDb),
) -> UserContext:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    token = auth_header.replace("Bearer ", "", 1).strip()
    payload = _decode_access_token(token)
    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = db.query(User).filter(User.Id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.IsActive:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")

    return UserContext(Id=user.Id, Username=user.Username, Role=user.Role, Department=user.Department)


def _MatchesServiceKey(provided: str) -> bool:
    expected = os.getenv("SERVICE_ROLE_KEY", "").strip()
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.strip(), expected)


def RequireServiceOrUser(
    request: Request,
    db: Session = Depends(GetDb),
) -> UserContext:
    service_key = request.headers.get(SERVICE_KEY_HEADER, "")
    if service_key:
        if not _MatchesServiceKey(service_key):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid service key")
        return UserContext(Id=SERVICE_USER_ID, Username="service", Role=ROLE_ADMIN, IsService=True)
    return RequireAuthenticated(request, db)


def NowUtc() -> datetime:
    return datetime.now(tz=timezone.utc)
