"""Auth0 access token verification."""

import time
from typing import Any

import httpx
import structlog
from jose import JWTError, jwt

from clinic_api.core.exceptions import UnauthorizedException

logger = structlog.get_logger(__name__)


class Auth0TokenVerifier:
    """
    Verify Auth0-issued bearer tokens against the tenant's JWKS.

    The key set is fetched lazily and cached for ``jwks_cache_ttl``
    seconds. A token signed with an unknown ``kid`` forces one refetch,
    which covers key rotation.
    """

    def __init__(
        self,
        domain: str,
        audience: str,
        algorithms: list[str] | None = None,
        issuer: str | None = None,
        jwks_cache_ttl: int = 3600,
        http_timeout: float = 5.0,
    ):
        """Initialize verifier for an Auth0 tenant."""
        self.domain = domain
        self.audience = audience
        self.algorithms = algorithms or ["RS256"]
        self.issuer = issuer or f"https://{domain}/"
        self.jwks_url = f"https://{domain}/.well-known/jwks.json"
        self.jwks_cache_ttl = jwks_cache_ttl
        self.http_timeout = http_timeout

        self._jwks: dict[str, Any] | None = None
        self._jwks_fetched_at = 0.0

    async def fetch_jwks(self) -> dict[str, Any]:
        """Download the tenant's JSON Web Key Set."""
        async with httpx.AsyncClient(timeout=self.http_timeout) as client:
            response = await client.get(self.jwks_url)
            response.raise_for_status()
            jwks = response.json()

        logger.info("jwks_fetched", url=self.jwks_url, keys=len(jwks.get("keys", [])))
        return jwks

    async def _get_jwks(self, force_refresh: bool = False) -> dict[str, Any]:
        expired = time.monotonic() - self._jwks_fetched_at > self.jwks_cache_ttl
        if self._jwks is None or expired or force_refresh:
            self._jwks = await self.fetch_jwks()
            self._jwks_fetched_at = time.monotonic()
        return self._jwks

    async def _get_signing_key(self, kid: str) -> dict[str, Any]:
        for refresh in (False, True):
            try:
                jwks = await self._get_jwks(force_refresh=refresh)
            except httpx.HTTPError as e:
                logger.error("jwks_fetch_failed", url=self.jwks_url, error=str(e))
                raise UnauthorizedException("Unable to verify token signature") from e

            for key in jwks.get("keys", []):
                if key.get("kid") == kid:
                    return key

            if not refresh:
                logger.warning("jwks_kid_not_found", kid=kid)

        raise UnauthorizedException("Unable to verify token signature")

    async def verify(self, token: str) -> dict[str, Any]:
        """
        Validate a bearer token and return its claims.

        Args:
            token: Raw JWT from the Authorization header

        Returns:
            Decoded token payload, always carrying a string ``sub``

        Raises:
            UnauthorizedException: If the token is malformed, expired,
                signed by an unknown key, issued for another audience
                or missing its subject
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise UnauthorizedException("Invalid token header") from e

        kid = header.get("kid")
        if not kid:
            raise UnauthorizedException("Token missing key ID")

        key = await self._get_signing_key(kid)

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
            )
        except JWTError as e:
            logger.warning("token_verification_failed", error=str(e))
            raise UnauthorizedException("Could not validate credentials") from e

        subject = payload.get("sub")
        if not subject or not isinstance(subject, str):
            raise UnauthorizedException("Token has no subject")

        return payload
