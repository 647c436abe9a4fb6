"""
OAuth2 access-token management for the Transfeera API.

Transfeera issues client_credentials tokens that live for a limited time.
The token is kept in the Django cache (Redis in production) so every worker
process shares one token, and it expires from the cache two minutes before
the provider would reject it.

Refresh is single-flight per process: concurrent callers that find the cache
empty wait on a lock and re-read the cache before requesting a new token.

Configuration (settings):
    TRANSFEERA_CLIENT_ID: OAuth client id
    TRANSFEERA_CLIENT_SECRET: OAuth client secret
    TRANSFEERA_LOGIN_URL: Base URL of the login service
    TRANSFEERA_TIMEOUT_SECONDS: HTTP timeout (default 30)
    TRANSFEERA_USER_AGENT: User-Agent sent with every request

Usage:
    from payments.adapters.token_manager import TransfeeraTokenManager

    tokens = TransfeeraTokenManager()
    headers = {"Authorization": f"Bearer {tokens.get_valid_token()}"}

    # after a 401 from the API
    tokens.invalidate()
"""

from __future__ import annotations

import hashlib
import logging
import threading
from typing import TYPE_CHECKING

import requests
from django.conf import settings
from django.core.cache import caches

from payments.exceptions import (
    ProviderAuthenticationError,
    ProviderError,
    ProviderUnavailableError,
)

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

# Tokens are dropped from the cache this many seconds before they expire
TOKEN_EXPIRY_MARGIN_SECONDS = 120
DEFAULT_TOKEN_LIFETIME_SECONDS = 1800


class TransfeeraTokenManager:
    """
    Fetches and caches Transfeera access tokens.

    Attributes:
        client_id: OAuth client id
        login_url: Base URL of the login service (``/authorization`` is appended)
        cache_key: Cache key the token is stored under, derived from client_id
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        login_url: str | None = None,
        session: requests.Session | None = None,
        timeout: float | None = None,
        cache_alias: str = "default",
    ):
        self.client_id = client_id if client_id is not None else settings.TRANSFEERA_CLIENT_ID
        self._client_secret = client_secret if client_secret is not None else settings.TRANSFEERA_CLIENT_SECRET
        self.login_url = (login_url or settings.TRANSFEERA_LOGIN_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.TRANSFEERA_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self._cache = caches[cache_alias]
        self._lock = threading.Lock()

        digest = hashlib.sha256(self.client_id.encode("utf-8")).hexdigest()[:16]
        self.cache_key = f"transfeera:access_token:{digest}"

    def get_valid_token(self) -> str:
        """
        Return a token that is valid for at least the expiry margin.

        Returns:
            Bearer access token

        Raises:
            ProviderAuthenticationError: Credentials were refused
            ProviderUnavailableError: Login service unreachable or erroring
        """
        token = self._cache.get(self.cache_key)
        if token:
            return token

        with self._lock:
            token = self._cache.get(self.cache_key)
            if token:
                return token

            token, lifetime = self._request_token()
            self._cache.set(self.cache_key, token, timeout=self._cache_ttl(lifetime))
            return token

    def invalidate(self) -> None:
        """Forget the cached token so the next call requests a new one."""
        self._cache.delete(self.cache_key)
        logger.info("Transfeera access token invalidated", extra={"client_id": self.client_id})

    # ==========================================================================
    # Internal
    # ==========================================================================

    def _request_token(self) -> tuple[str, int]:
        url = f"{self.login_url}/authorization"
        body = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self._client_secret,
        }
        headers = {
            "Content-Type": "application/json",
            "User-Agent": settings.TRANSFEERA_USER_AGENT,
        }

        try:
            response = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(
                "Transfeera login request failed",
                extra={"client_id": self.client_id, "error": str(e)},
            )
            raise ProviderUnavailableError(
                "Could not reach the Transfeera login service",
                details={"error": str(e)},
            ) from e

        if response.status_code in (400, 401, 403):
            logger.error(
                "Transfeera refused client credentials",
                extra={"client_id": self.client_id, "status_code": response.status_code},
            )
            raise ProviderAuthenticationError(
                "Transfeera refused the client credentials",
                status_code=response.status_code,
            )
        if response.status_code == 429 or response.status_code >= 500:
            raise ProviderUnavailableError(
                "Transfeera login service unavailable",
                status_code=response.status_code,
            )
        if not response.ok:
            raise ProviderError(
                "Unexpected response from Transfeera login service",
                status_code=response.status_code,
            )

        payload = self._json(response)
        token = payload.get("access_token")
        if not token:
            raise ProviderAuthenticationError(
                "Transfeera login response carried no access token",
                status_code=response.status_code,
            )

        lifetime = payload.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS
        logger.info(
            "Transfeera access token issued",
            extra={"client_id": self.client_id, "expires_in": lifetime},
        )
        return token, int(lifetime)

    @staticmethod
    def _cache_ttl(lifetime: int) -> int:
        if lifetime > TOKEN_EXPIRY_MARGIN_SECONDS:
            return lifetime - TOKEN_EXPIRY_MARGIN_SECONDS
        return max(lifetime // 2, 1)

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
