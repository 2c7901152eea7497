"""
FastAPI Main Application
RBAC Admin API Service
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog
from contextlib import asynccontextmanager

from rbac_admin.core.config import settings
from rbac_admin.core.database import AsyncSessionLocal, init_database, close_database
from rbac_admin.core.exceptions import AppError
from rbac_admin.core.logging import setup_logging
from rbac_admin.api.v1.router import api_router
from rbac_admin.middleware.security import SecurityHeadersMiddleware
from rbac_admin.middleware.logging import LoggingMiddleware
from rbac_admin.schemas.base import ApiResponse
from rbac_admin.services.bootstrap_admin import ensure_bootstrap_admin_exists

# Setup structured logging
setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting RBAC Admin API Service", version=settings.VERSION, environment=settings.ENVIRONMENT)

    await init_database()

    # Seed permissions, the admin role and the admin user (idempotent)
    async with AsyncSessionLocal() as session:
        await ensure_bootstrap_admin_exists(session)

    yield

    logger.info("Shutting down RBAC Admin API Service")
    await close_database()


def _envelope(status_code: int, message: str, data=None, headers=None) -> JSONResponse:
    body = ApiResponse.fail(status_code, message, data)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning(
        "Request rejected",
        path=request.url.path,
        method=request.method,
        code=exc.code,
        error=exc.message,
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.code == 401 else None
    return _envelope(exc.code, exc.message, exc.details or None, headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    logger.warning("Request validation failed", path=request.url.path, error=message)
    return _envelope(422, message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=exc,
    )
    return _envelope(500, "Internal server error")


def create_app() -> FastAPI:
    application = FastAPI(
        title="RBAC Admin API",
        description="Role-based access control administration API",
        version=settings.VERSION,
        docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
        redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
        lifespan=lifespan,
    )

    application.add_middleware(SecurityHeadersMiddleware)
    application.add_middleware(LoggingMiddleware)

    # CORS outermost so preflight requests are answered before anything else
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )

    if settings.ENVIRONMENT == "production":
        application.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.ALLOWED_HOSTS
        )

    application.add_exception_handler(AppError, app_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(StarletteHTTPException, http_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)

    application.include_router(api_router, prefix=settings.API_PREFIX)

    @application.get("/")
    async def root():
        """Root endpoint"""
        return ApiResponse.ok({
            "service": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "health": f"{settings.API_PREFIX}/health",
        })

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "rbac_admin.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower()
    )
