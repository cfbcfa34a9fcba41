from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from repair_desk.config import ConfigError, load_settings
from repair_desk.logging_config import configure_logging
from repair_desk.routers import catalog, intake, requests, review
from repair_desk.schemas import safe
from repair_desk.store import RecordNotFound, StoreError

settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Database error", "detail": safe(exc.message)},
    )


async def config_error_handler(request: Request, exc: ConfigError) -> JSONResponse:
    logger.error("Configuration error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error", "detail": safe(str(exc))},
    )


async def not_found_handler(request: Request, exc: RecordNotFound) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Not found"})


def add_error_handlers(target: FastAPI) -> None:
    target.add_exception_handler(StoreError, store_error_handler)
    target.add_exception_handler(ConfigError, config_error_handler)
    target.add_exception_handler(RecordNotFound, not_found_handler)


app = FastAPI(title="GSM Team Repair Desk", version="0.1.0")
app.include_router(review.router)
app.include_router(requests.router)
app.include_router(catalog.router)
add_error_handlers(app)

# The storefront posts repair requests cross-origin; nothing else is opened to it.
intake_app = FastAPI(title="GSM Team Repair Intake", version="0.1.0", openapi_url=None)
intake_app.include_router(intake.router)
add_error_handlers(intake_app)
intake_app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allowed_origins),
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    allow_credentials=True,
)
# Routes of the mounted app resolve dependency overrides against it.
intake_app.dependency_overrides = app.dependency_overrides
app.mount("/api", intake_app)


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}
