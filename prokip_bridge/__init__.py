"""
Prokip Bridge
=============

WooCommerce <-> Prokip order and inventory synchronisation API.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .routes import (
    prokip_router, connection_router, sync_router, webhook_router, error_router, analytics_router
)
from .services.exceptions import (
    BridgeException, ValidationError, NotFoundError, ConflictError, BusinessRuleError,
    AuthenticationError, ExternalServiceError, CredentialError
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


def create_app() -> FastAPI:
    """Create FastAPI application with middleware and routes"""

    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        logger.info("Prokip bridge API starting up")
        yield
        logger.info("Prokip bridge API shutting down")

    app = FastAPI(
        title="Prokip Bridge API",
        description="Order and inventory synchronisation between WooCommerce stores and Prokip",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan
    )

    setup_middleware(app)
    setup_exception_handlers(app)
    setup_routes(app)

    return app


def setup_middleware(app: FastAPI):
    """Setup application middleware"""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["*"],
    )

    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.middleware("http")
    async def add_process_time(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response


def _error_response(request: Request, status_code: int, error: str, exc: BridgeException) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "message": exc.message,
            "error_code": exc.error_code,
            "details": exc.details or None,
            "request_id": getattr(request.state, 'request_id', None)
        }
    )


def setup_exception_handlers(app: FastAPI):
    """Setup custom exception handlers"""

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        return _error_response(request, status.HTTP_400_BAD_REQUEST, "Validation Error", exc)

    @app.exception_handler(NotFoundError)
    async def not_found_exception_handler(request: Request, exc: NotFoundError):
        return _error_response(request, status.HTTP_404_NOT_FOUND, "Not Found", exc)

    @app.exception_handler(ConflictError)
    async def conflict_exception_handler(request: Request, exc: ConflictError):
        return _error_response(request, status.HTTP_409_CONFLICT, "Conflict", exc)

    @app.exception_handler(BusinessRuleError)
    async def business_rule_exception_handler(request: Request, exc: BusinessRuleError):
        return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Business Rule Violation", exc)

    @app.exception_handler(AuthenticationError)
    async def authentication_exception_handler(request: Request, exc: AuthenticationError):
        return _error_response(request, status.HTTP_401_UNAUTHORIZED, "Authentication Error", exc)

    @app.exception_handler(ExternalServiceError)
    async def external_service_exception_handler(request: Request, exc: ExternalServiceError):
        logger.error(f"Upstream failure: {exc.message}")
        return _error_response(request, status.HTTP_502_BAD_GATEWAY, "External Service Error", exc)

    @app.exception_handler(CredentialError)
    async def credential_exception_handler(request: Request, exc: CredentialError):
        logger.error(f"Credential failure: {exc.message}")
        return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Credential Error", exc)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Internal Server Error",
                "message": "An unexpected error occurred",
                "request_id": getattr(request.state, 'request_id', None)
            }
        )


def setup_routes(app: FastAPI):
    """Setup application routes"""

    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "version": VERSION
        }

    @app.get("/", tags=["System"])
    async def root():
        return {
            "message": "Prokip Bridge API",
            "version": VERSION,
            "docs_url": "/docs",
            "redoc_url": "/redoc"
        }

    app.include_router(prokip_router, prefix="/api/prokip", tags=["Prokip"])
    app.include_router(connection_router, prefix="/api/connections", tags=["Connections"])
    app.include_router(sync_router, prefix="/api/sync", tags=["Sync"])
    app.include_router(webhook_router, prefix="/api/webhooks", tags=["Webhooks"])
    app.include_router(error_router, prefix="/api/errors", tags=["Errors"])
    app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])
