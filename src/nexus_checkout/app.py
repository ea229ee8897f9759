"""FastAPI application factory for Nexus checkout."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nexus_checkout.common.config import get_settings
from nexus_checkout.common.exceptions import InternalError, NexusError
from nexus_checkout.common.schemas import ErrorResponse, HealthResponse
from nexus_checkout.common.validation import first_error_message

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from nexus_checkout.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
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

    @app.exception_handler(NexusError)
    async def nexus_error_handler(request: Request, exc: NexusError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        # Body problems are the caller's form input; header/query problems stay 422.
        in_body = all(e.get("loc", ("body",))[0] == "body" for e in errors)
        return _error(400 if in_body else 422, first_error_message(errors))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return _error(500, InternalError().message)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from nexus_checkout.verification.router import router as verification_router
    from nexus_checkout.checkout.router import router as checkout_router
    from nexus_checkout.sessions.router import router as sessions_router
    from nexus_checkout.webhooks.router import router as webhooks_router
    from nexus_checkout.provisioning.router import router as provisioning_router
    from nexus_checkout.trials.router import router as trials_router
    from nexus_checkout.tenants.router import router as tenants_router
    from nexus_checkout.audit.router import router as audit_router

    prefix = settings.api_prefix
    app.include_router(verification_router, prefix=prefix, tags=["verification"])
    app.include_router(checkout_router, prefix=prefix, tags=["checkout"])
    app.include_router(sessions_router, prefix=prefix, tags=["sessions"])
    app.include_router(webhooks_router, prefix=prefix, tags=["webhooks"])
    app.include_router(provisioning_router, prefix=prefix, tags=["provisioning"])
    app.include_router(trials_router, prefix=prefix, tags=["trials"])
    app.include_router(tenants_router, prefix=prefix, tags=["tenants"])
    app.include_router(audit_router, prefix=prefix, tags=["audit"])

    return app
