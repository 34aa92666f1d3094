# dropstock/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dropstock import models  # noqa: F401  registers tables on Base.metadata
from dropstock.core.config import get_settings
from dropstock.core.exceptions import BaseServiceError, TransientDbError
from dropstock.core.logging_config import configure_logging
from dropstock.routes import drops, health, purchases, reservations
from dropstock.routes import scheduler as scheduler_routes
from dropstock.routes import websockets as websocket_router
from dropstock.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    if settings.SWEEP_ENABLED:
        await start_scheduler(settings)
    else:
        logger.info("Expiration sweep is disabled. Set SWEEP_ENABLED=true to enable")

    try:
        yield  # This is where the app runs
    finally:
        await stop_scheduler()


def error_body(exc: BaseServiceError, hide_internal: bool) -> dict:
    body = {"success": False, "reason": None, **exc.to_dict()}
    if hide_internal and exc.status_code >= 500 and not isinstance(exc, TransientDbError):
        body["message"] = "Internal server error"
    return body


async def service_error_handler(request: Request, exc: BaseServiceError):
    settings = get_settings()
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")

    headers = None
    if isinstance(exc, TransientDbError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc, hide_internal=settings.is_production),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "validation_error",
            "reason": None,
            "message": message,
        },
    )


HTTP_ERROR_KINDS = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": HTTP_ERROR_KINDS.get(exc.status_code, "http_error"),
            "reason": None,
            "message": str(exc.detail),
        },
        headers=getattr(exc, "headers", None),
    )


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Drop Stock Reservations",
        lifespan=lifespan,
        debug=settings.DEBUG,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CLIENT_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BaseServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(reservations.router)
    app.include_router(purchases.router)
    app.include_router(drops.router)
    app.include_router(scheduler_routes.router)
    app.include_router(websocket_router.router)  # WebSockets are unauthenticated
    app.include_router(health.router)  # Health check should be accessible without auth

    return app


app = create_app()
