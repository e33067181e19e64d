"""
FastAPI application entry point for the prayer wall backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from prayerwall.config import get_settings
from prayerwall.dependencies import get_db_client
from prayerwall.routes import router
from prayerwall.seed import seed_demo_data

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if get_settings().seed_demo_data:
        seed_demo_data(get_db_client())
    yield


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    # Drop the "body"/"path" prefix so the field name matches the payload key.
    loc = [str(part) for part in first.get("loc", ())[1:]]
    content = {"message": first.get("msg", "Invalid request")}
    if loc:
        content["field"] = ".".join(loc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage failure handling %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error"},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.getLogger("prayerwall").setLevel(settings.log_level.upper())
    app = FastAPI(title="Prayer Wall Backend (FastAPI)", version="0.1.0", lifespan=lifespan)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
