from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from src.api.routes import router
from src.config import settings
from src.models.db import init_db
from src.notifications.errors import ConfigurationError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(
    title="study_hall_push",
    description="Push notification fan-out for study-hall admins and members",
    version="0.1.0",
    debug=settings.app_debug,
)


@app.on_event("startup")
def startup_event() -> None:
    if settings.token_store != "sql":
        return

    max_attempts = 8
    delay_seconds = 3
    last_error: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            init_db()
            logging.info("Database initialization completed", extra={"attempt": attempt, "schema": settings.db_schema})
            return
        except SQLAlchemyError as exc:
            last_error = exc
            logging.exception(
                "Database initialization failed",
                extra={"attempt": attempt, "max_attempts": max_attempts},
            )
            if attempt < max_attempts:
                time.sleep(delay_seconds)
            continue

    raise RuntimeError("Database initialization failed after retries") from last_error


@app.exception_handler(ConfigurationError)
def configuration_error_handler(_request: Request, exc: ConfigurationError) -> JSONResponse:
    logging.error("Notification service misconfigured", extra={"error": str(exc)})
    return JSONResponse(status_code=500, content={"success": False, "error": "Server configuration error."})


app.include_router(router)
