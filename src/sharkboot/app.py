"""FastAPI application factory for SharkBoot."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sharkboot.common.config import get_settings
from sharkboot.common.exceptions import RemoteApiError, SharkbootError
from sharkboot.common.logging import setup_logging
from sharkboot.common.schemas import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from sharkboot.deps import close_remote_clients, get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await close_remote_clients()
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SharkbootError)
    async def sharkboot_error_handler(request: Request, exc: SharkbootError):
        details = exc.details
        if isinstance(exc, RemoteApiError):
            details = {"service": exc.service, "status": exc.remote_status}
        if exc.status_code >= 500:
            logger.warning(
                "%s %s failed: %s", request.method, request.url.path, exc.message,
                extra={"code": exc.code},
            )
        body = ErrorResponse(error=exc.message, code=exc.code, details=details)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        body = ErrorResponse(
            error="Invalid request",
            code="VALIDATION_ERROR",
            details=jsonable_encoder(exc.errors()),
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "%s %s raised %s", request.method, request.url.path, type(exc).__name__,
            exc_info=exc,
        )
        body = ErrorResponse(error="Internal server error", code="INTERNAL_ERROR")
        return JSONResponse(status_code=500, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from sharkboot.tenants.router import router as tenant_router
    from sharkboot.assistants.router import router as assistant_router
    from sharkboot.files.router import router as file_router
    from sharkboot.runs.router import router as run_router
    from sharkboot.whatsapp.router import router as whatsapp_router
    from sharkboot.facebook.router import router as facebook_router

    prefix = settings.api_prefix
    app.include_router(tenant_router, prefix=prefix, tags=["tenants"])
    app.include_router(assistant_router, prefix=prefix)
    app.include_router(file_router, prefix=prefix)
    app.include_router(run_router, prefix=prefix)
    app.include_router(whatsapp_router, prefix=prefix)
    app.include_router(facebook_router, prefix=prefix)

    return app
