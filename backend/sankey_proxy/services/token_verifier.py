"""Azure AD access-token verification against the tenant's published JWKS.

The signing keys are fetched from the tenant discovery endpoint with httpx
and cached for a fixed TTL. An unknown ``kid`` forces one refresh so key
rotation is picked up; forced refreshes are spaced at least
``MIN_FORCED_REFRESH_SECONDS`` apart.

Only RS256 is accepted. Tokens signed with HS256 or marked ``none`` are
rejected outright.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import jwt
from jwt.algorithms import RSAAlgorithm

from sankey_proxy.config import IdentitySettings
from sankey_proxy.models.auth_models import UserIdentity

logger = logging.getLogger(__name__)

ALLOWED_ALGORITHMS = ["RS256"]
MIN_FORCED_REFRESH_SECONDS = 60


class AuthNotConfiguredError(RuntimeError):
    """Raised when identity-provider credentials are missing."""


class TokenInvalidError(ValueError):
    """Raised when a bearer token fails verification."""


class JwksUnavailableError(RuntimeError):
    """Raised when the discovery endpoint answers with something other than a key set."""


def identity_from_claims(claims: dict[str, Any]) -> UserIdentity:
    return UserIdentity(
        email=claims.get("preferred_username") or claims.get("email"),
        display_name=claims.get("name"),
        subject_id=claims.get("oid") or claims.get("sub"),
    )


def _find_key(jwks: dict[str, Any], kid: str) -> dict[str, Any] | None:
    for key in jwks.get("keys", []):
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None


class TokenVerifier:
    def __init__(self, settings: IdentitySettings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.cache_ttl = timedelta(hours=settings.jwks_cache_ttl_hours)
        self.min_forced_refresh = timedelta(seconds=MIN_FORCED_REFRESH_SECONDS)
        self._transport = transport
        self._jwks_cache: dict[str, Any] | None = None
        self._cache_expires_at: datetime | None = None
        self._last_forced_refresh: datetime | None = None

    @property
    def configured(self) -> bool:
        return self.settings.configured

    async def _fetch_jwks(self) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            response = await client.get(self.settings.jwks_uri)
            response.raise_for_status()
        try:
            data = response.json()
        except ValueError as exc:
            raise JwksUnavailableError("JWKS response is not JSON") from exc
        if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
            raise JwksUnavailableError("JWKS response has no key list")
        return data

    async def get_jwks(self, force_refresh: bool = False) -> dict[str, Any]:
        """Return the tenant JWKS, served from cache while the TTL holds."""
        now = datetime.now(timezone.utc)
        if not force_refresh and self._jwks_cache and self._cache_expires_at and now < self._cache_expires_at:
            return self._jwks_cache

        self._jwks_cache = await self._fetch_jwks()
        self._cache_expires_at = now + self.cache_ttl
        logger.info("JWKS fetched from %s (%d keys)", self.settings.jwks_uri, len(self._jwks_cache["keys"]))
        return self._jwks_cache

    def _may_force_refresh(self) -> bool:
        now = datetime.now(timezone.utc)
        if self._last_forced_refresh and now - self._last_forced_refresh < self.min_forced_refresh:
            return False
        self._last_forced_refresh = now
        return True

    async def _signing_key(self, kid: str) -> Any:
        key = _find_key(await self.get_jwks(), kid)
        if key is None and self._may_force_refresh():
            logger.warning("Signing key %s not in cached JWKS, refreshing", kid)
            key = _find_key(await self.get_jwks(force_refresh=True), kid)
        if key is None:
            raise TokenInvalidError(f"Signing key {kid} not found")

        try:
            return RSAAlgorithm.from_jwk(key)
        except (jwt.PyJWTError, KeyError, ValueError) as exc:
            logger.error("Signing key %s could not be loaded: %s", kid, exc)
            raise TokenInvalidError(f"Signing key {kid} is unusable") from exc

    async def verify(self, raw_token: str) -> UserIdentity:
        """Verify signature, audience, issuer and algorithm; return the caller's identity."""
        if not self.configured:
            raise AuthNotConfiguredError("Authentication not configured")

        try:
            header = jwt.get_unverified_header(raw_token)
        except jwt.PyJWTError as exc:
            raise TokenInvalidError(f"Malformed token: {exc}") from exc

        alg = header.get("alg")
        if alg not in ALLOWED_ALGORITHMS:
            raise TokenInvalidError(f"Algorithm {alg} not allowed")
        kid = header.get("kid")
        if not kid:
            raise TokenInvalidError("Token header has no key id")

        try:
            signing_key = await self._signing_key(kid)
        except (httpx.HTTPError, JwksUnavailableError) as exc:
            logger.error("Unable to fetch signing keys: %s", exc)
            raise TokenInvalidError("Unable to fetch signing keys") from exc

        try:
            claims = jwt.decode(
                raw_token,
                signing_key,
                algorithms=ALLOWED_ALGORITHMS,
                audience=self.settings.client_id,
                issuer=self.settings.issuer,
            )
        except jwt.PyJWTError as exc:
            raise TokenInvalidError(str(exc)) from exc

        return identity_from_claims(claims)
