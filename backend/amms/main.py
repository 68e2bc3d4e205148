import logging
import os
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from amms.core.logging import format_request_line, setup_logging
from amms.core.migrations import RunMigrations, ShouldRunOnStartup
from amms.modules.core.router import router as core_router
from amms.modules.notifications.push_router import router as push_router
from amms.modules.notifications.router import router as notifications_router

setup_logging()

logger = logging.getLogger("app.request")
startup_logger = logging.getLogger("app.startup")


@asynccontextmanager
async def lifespan(_: FastAPI):
    if ShouldRunOnStartup():
        RunMigrations()
    startup_logger.info("startup complete")
    yield


app = FastAPI(title="AMMS Push API", lifespan=lifespan)

allowed_origins = os.getenv("ALLOWED_ORIGINS", "")
origin_list = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
if origin_list:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def request_logger(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = int((time.perf_counter() - start) * 1000)

    status = response.status_code
    log_msg = format_request_line(
        request.method,
        request.url.path,
        request.url.query,
        status,
        duration_ms,
        request_id,
    )
    if status >= 500:
        logger.error(log_msg)
    elif status >= 400:
        logger.warning(log_msg)
    else:
        logger.info(log_msg)

    response.headers["X-Request-Id"] = request_id
    return response


app.include_router(core_router)
app.include_router(push_router)
app.include_router(notifications_router)
