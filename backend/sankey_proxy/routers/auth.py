"""Authentication endpoints: token exchange, status and logout."""

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from sankey_proxy.config import Settings
from sankey_proxy.models.auth_models import AuthStatus, LogoutResponse, Session, TokenRequest, TokenResponse
from sankey_proxy.rate_limit import TOKEN_EXCHANGE_LIMIT, limiter
from sankey_proxy.services.auth import (
    current_session,
    get_gateway,
    get_session_store,
    get_settings,
    get_token_verifier,
)
from sankey_proxy.services.session_store import SessionStore
from sankey_proxy.services.token_verifier import TokenVerifier
from sankey_proxy.services.warehouse import WarehouseGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/token", response_model=TokenResponse)
@limiter.limit(TOKEN_EXCHANGE_LIMIT)
async def exchange_token(
    request: Request,
    response: Response,
    body: TokenRequest | None = None,
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_session_store),
    verifier: TokenVerifier = Depends(get_token_verifier),
    session: Session | None = Depends(current_session),
):
    """Verify an Azure AD access token and open a server-side session."""
    if not verifier.configured:
        # Reported ahead of any token checks
        return JSONResponse(
            status_code=503,
            content={
                "error": "Authentication not configured",
                "message": "Azure AD credentials are not set up. Please configure environment variables.",
            },
        )
    if body is None or not body.token:
        return JSONResponse(status_code=401, content={"error": "No token provided"})

    user = await verifier.verify(body.token)

    # Rotate: a fresh identifier for every successful login
    if session is not None:
        store.destroy(session.session_id)
    new_session = store.create(user)
    response.set_cookie(
        key=settings.session.cookie_name,
        value=new_session.session_id,
        httponly=True,
        samesite="lax",
        secure=settings.session.cookie_secure,
    )
    return TokenResponse(success=True, message="Token validated", user=user)


@router.get("/status", response_model=AuthStatus)
async def auth_status(
    session: Session | None = Depends(current_session),
    verifier: TokenVerifier = Depends(get_token_verifier),
    gateway: WarehouseGateway = Depends(get_gateway),
) -> AuthStatus:
    """Report whether the caller is signed in and which back-ends are configured."""
    return AuthStatus(
        authenticated=bool(session and session.authenticated),
        has_warehouse_config=gateway.configured,
        has_identity_config=verifier.configured,
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_session_store),
    session: Session | None = Depends(current_session),
) -> LogoutResponse:
    if session is not None:
        store.destroy(session.session_id)
    response.delete_cookie(settings.session.cookie_name)
    return LogoutResponse(success=True)
