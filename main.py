from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional

from rollcall.core import config
from rollcall.core.config import validate_settings, get_settings
from rollcall.core.logging_config import setup_logging, get_logger
from rollcall.core.exceptions import (
    RollCallException,
    ConfigurationError,
    ConnectivityError,
    DatabaseError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    sanitize_error_message
)
from rollcall.core.sessions import InMemorySessionStore, SessionStore
from rollcall.core.supabase import get_supabase_admin_client, new_auth_client, close_supabase_clients
from rollcall.services.store import Store, SupabaseStore
from rollcall.api.v1.router import api_router

# Setup logging first (before settings validation)
setup_logging()
logger = get_logger(__name__)

APP_NAME = "RollCall Check-in Service"
APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    owns_store = getattr(app.state, "store", None) is None
    if owns_store:
        try:
            logger.info("Validating configuration...")
            validate_settings()
            logger.info("Configuration validated successfully")
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e.message}")
            logger.error("Application startup failed due to configuration issues.")
            raise

        settings = config.settings
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Debug mode: {'ON' if settings.DEBUG else 'OFF'}")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Session TTL: {settings.SESSION_TTL_HOURS}h")
        app.state.store = SupabaseStore(await get_supabase_admin_client(), new_auth_client)

    yield

    # Shutdown
    logger.info("Shutting down application")
    if owns_store:
        await close_supabase_clients()


def _status_for(exc: RollCallException) -> int:
    if isinstance(exc, AuthenticationError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, AuthorizationError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ConnectivityError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, (DatabaseError, ConfigurationError)):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


def _debug() -> bool:
    settings = get_settings()
    return bool(settings and settings.DEBUG)


async def custom_exception_handler(request: Request, exc: RollCallException):
    """Handle custom application exceptions."""
    logger.error(
        f"Application error: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "details": exc.details,
            "path": str(request.url),
            "method": request.method,
        }
    )

    return JSONResponse(
        status_code=_status_for(exc),
        content={
            "error": True,
            "message": exc.message,
            "error_code": exc.error_code,
            "details": exc.details if _debug() else None,
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions."""
    logger.exception(
        f"Unhandled exception: {type(exc).__name__}",
        extra={
            "path": str(request.url),
            "method": request.method,
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "message": sanitize_error_message(exc),
            "error_code": "INTERNAL_ERROR",
            "details": {
                "type": type(exc).__name__,
                "message": str(exc),
            } if _debug() else None,
        }
    )


def create_app(store: Optional[Store] = None, session_store: Optional[SessionStore] = None) -> FastAPI:
    settings = get_settings()
    debug = bool(settings and settings.DEBUG)

    # Disable docs in production
    app = FastAPI(
        title=settings.APP_NAME if settings else APP_NAME,
        version=settings.APP_VERSION if settings else APP_VERSION,
        description="Activity check-in, announcements and live attendance roster API",
        lifespan=lifespan,
        docs_url="/api/docs" if debug else None,
        redoc_url="/api/redoc" if debug else None,
        openapi_url="/api/openapi.json" if debug else None,
    )
    app.state.store = store
    app.state.session_store = session_store or InMemorySessionStore()

    app.add_exception_handler(RollCallException, custom_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    frontend_url = settings.FRONTEND_URL if settings else "http://localhost:3000"
    allowed_origins = list(dict.fromkeys([
        frontend_url,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins if not debug else ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "message": f"Welcome to {app.title}",
            "version": app.version,
            "docs": "/api/docs",
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Health check including store connectivity."""
        health_status = {
            "status": "healthy",
            "service": app.title,
            "version": app.version,
        }
        try:
            await request.app.state.store.query_activities()
            health_status["database"] = "connected"
        except Exception as e:
            logger.error(f"Database health check failed: {str(e)}")
            health_status["database"] = "disconnected"
            health_status["status"] = "degraded"

        status_code = status.HTTP_200_OK if health_status["status"] == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
        return JSONResponse(content=health_status, status_code=status_code)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT if settings else 8000)
