import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sankey_proxy.config import Settings, settings_from_env
from sankey_proxy.middleware.session import SessionMiddleware
from sankey_proxy.models.data_models import HealthResponse
from sankey_proxy.rate_limit import limiter
from sankey_proxy.routers.auth import router as auth_router
from sankey_proxy.routers.data import router as data_router
from sankey_proxy.services.auth import UnauthorizedError
from sankey_proxy.services.query_builder import InvalidFilterFieldError
from sankey_proxy.services.session_store import SessionStore
from sankey_proxy.services.token_verifier import AuthNotConfiguredError, TokenInvalidError, TokenVerifier
from sankey_proxy.services.warehouse import QueryExecutionError, WarehouseGateway

logger = logging.getLogger(__name__)


def _log_configuration(settings: Settings) -> None:
    if settings.identity.configured:
        logger.info("Azure AD configured for tenant %s", settings.identity.tenant_id)
    else:
        logger.warning(
            "Azure AD credentials not configured; authentication will not work. "
            "Set AZURE_AD_CLIENT_ID, AZURE_AD_TENANT_ID and AZURE_AD_CLIENT_SECRET."
        )
    if not settings.warehouse.configured:
        logger.warning("Snowflake credentials not configured; data queries will fail.")


def create_app(
    settings: Settings | None = None,
    *,
    verifier: TokenVerifier | None = None,
    gateway: WarehouseGateway | None = None,
    store: SessionStore | None = None,
) -> FastAPI:
    """Build the gateway app; collaborators default to ones built from ``settings``."""
    settings = settings or settings_from_env()
    gateway = gateway or WarehouseGateway(settings.warehouse)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _log_configuration(settings)
        yield
        logger.info("Shutting down: closing warehouse connection")
        app.state.gateway.close()

    app = FastAPI(title="Sankey Proxy API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.token_verifier = verifier or TokenVerifier(settings.identity)
    app.state.gateway = gateway
    app.state.session_store = store or SessionStore(settings.session.idle_timeout_seconds)
    app.state.limiter = limiter

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(AuthNotConfiguredError)
    async def _auth_not_configured(request: Request, exc: AuthNotConfiguredError):
        return JSONResponse(status_code=503, content={"error": "Authentication not configured"})

    @app.exception_handler(TokenInvalidError)
    async def _token_invalid(request: Request, exc: TokenInvalidError):
        logger.warning("Token verification failed: %s", exc)
        return JSONResponse(status_code=401, content={"error": "Invalid token", "details": str(exc)})

    @app.exception_handler(UnauthorizedError)
    async def _unauthorized(request: Request, exc: UnauthorizedError):
        return JSONResponse(status_code=401, content={"error": "Not authenticated"})

    @app.exception_handler(InvalidFilterFieldError)
    async def _invalid_filter(request: Request, exc: InvalidFilterFieldError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(QueryExecutionError)
    async def _query_failed(request: Request, exc: QueryExecutionError):
        logger.error("Warehouse query failed: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Query execution failed"})

    app.add_middleware(SessionMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    app.include_router(auth_router)
    app.include_router(data_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc).isoformat())

    return app


app = create_app()
