import logging
import time

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from amms.core.logging import format_client_message
from amms.db import GetEngine

router = APIRouter(prefix="/api", tags=["health"])
logger = logging.getLogger("core.health")
client_logger = logging.getLogger("client")


@router.get("/health")
async def api_health() -> dict:
    logger.debug("health check ok")
    return {"status": "ok"}


@router.get("/health/db")
def api_health_db() -> dict:
    try:
        with GetEngine().connect() as connection:
            connection.execute(text("SELECT 1")).scalar()
    except (SQLAlchemyError, RuntimeError):
        logger.exception("db check failed")
        return {"status": "error", "detail": "database unavailable"}
    logger.debug("db check ok")
    return {"status": "ok"}


class ClientLogPayload(BaseModel):
    level: str = Field(default="info", max_length=16)
    message: str = Field(..., max_length=2000)
    source: str | None = Field(default=None, max_length=40)
    context: dict | None = None


@router.post("/logs")
async def api_logs(payload: ClientLogPayload, request: Request) -> dict:
    level = payload.level.lower()
    metadata = {
        "ip": request.client.host if request.client else "unknown",
        "ua": request.headers.get("user-agent", "unknown"),
        "source": payload.source or "web",
    }
    message = format_client_message(payload.message, {**metadata, **(payload.context or {})})

    if level == "debug":
        client_logger.debug(message)
    elif level == "warning":
        client_logger.warning(message)
    elif level == "error":
        client_logger.error(message)
    else:
        client_logger.info(message)

    logger.debug("client log received")
    return {"status": "ok", "timestamp": time.time()}
