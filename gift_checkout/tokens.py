"""
Catalog API bearer token cache.

A `TokenManager` owns exactly one `TokenState` and refreshes it through the
client-credentials exchange. Concurrent callers that find the cache stale
share a single in-flight refresh.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Callable, Optional

import httpx

from gift_checkout.errors import AuthError, RemoteUnavailable
from gift_checkout.models import TokenState


CATALOG_AUTH_URL = "https://api.shopify.com/auth/access_token"
REFRESH_MARGIN_SECONDS = 60.0
DEFAULT_EXPIRES_IN = 3600
DEFAULT_TIMEOUT = 30.0

logger = logging.getLogger(__name__)


class TokenManager:
    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        auth_url: str = CATALOG_AUTH_URL,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id or ""
        self.client_secret = client_secret or ""
        self.auth_url = auth_url
        self.timeout = timeout
        self._clock = clock
        self._transport = transport
        self._state: Optional[TokenState] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def state(self) -> Optional[TokenState]:
        return self._state

    async def get_token(self) -> Optional[str]:
        """
        Return a bearer token valid for at least the refresh margin.

        Returns None when no client credentials are configured. Raises
        `AuthError` if the token endpoint rejects the exchange and
        `RemoteUnavailable` if it cannot be reached.
        """
        if not self.configured:
            return None

        state = self._state
        if state is not None and state.is_fresh(self._clock(), REFRESH_MARGIN_SECONDS):
            return state.value

        if self._refresh_task is None:
            self._refresh_task = asyncio.ensure_future(self._refresh())
        # shield: one caller being cancelled must not cancel the shared refresh
        return await asyncio.shield(self._refresh_task)

    def invalidate(self) -> None:
        self._state = None

    async def _refresh(self) -> str:
        try:
            state = await self._exchange()
            self._state = state
            return state.value
        finally:
            self._refresh_task = None

    async def _exchange(self) -> TokenState:
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "client_credentials",
        }
        logger.info("Requesting catalog token from %s", self.auth_url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.auth_url, json=payload)
        except httpx.TransportError as exc:
            logger.warning("Token endpoint unreachable: %s", exc)
            raise RemoteUnavailable(f"token endpoint unreachable: {exc}") from exc

        received_at = self._clock()
        if resp.status_code >= 400:
            raise AuthError(
                f"token endpoint rejected credentials (HTTP {resp.status_code})",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise AuthError("token endpoint returned a non-JSON body", status_code=resp.status_code) from exc

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise AuthError("token endpoint returned no access_token", status_code=resp.status_code)

        expires_in = body.get("expires_in") or DEFAULT_EXPIRES_IN
        return TokenState(value=access_token, expires_at=received_at + float(expires_in))


def create_token_manager(
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> TokenManager:
    """
    Factory — reads SHOPIFY_CATALOG_CLIENT_ID / SHOPIFY_CATALOG_CLIENT_SECRET
    when explicit credentials are not given.
    """
    return TokenManager(
        client_id=client_id or os.getenv("SHOPIFY_CATALOG_CLIENT_ID", ""),
        client_secret=client_secret or os.getenv("SHOPIFY_CATALOG_CLIENT_SECRET", ""),
        timeout=timeout,
    )
