"""
UCP checkout protocol client.

Sends create/complete envelopes to ``https://{merchant}/api/ucp/mcp`` with the
catalog bearer token, and tokenizes cards against the card vault. Nothing is
retried here; a caller retries by resubmitting the same envelope so the
merchant sees the same idempotency key.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from gift_checkout.errors import (
    InvalidRequest,
    RemoteRejected,
    RemoteUnavailable,
    Unconfigured,
)
from gift_checkout.models import (
    CardDetails,
    CheckoutEnvelope,
    CheckoutMethod,
    NormalizedCheckoutResult,
)
from gift_checkout.parser import parse_checkout_reply
from gift_checkout.tokens import DEFAULT_TIMEOUT, TokenManager


CARD_VAULT_URL = "https://checkout.pci.shopifyinc.com/sessions"
MCP_PATH = "/api/ucp/mcp"

logger = logging.getLogger(__name__)


def merchant_mcp_url(merchant_endpoint: str) -> str:
    return f"https://{merchant_endpoint}{MCP_PATH}"


def _require_merchant(merchant_endpoint: Optional[str]) -> str:
    endpoint = (merchant_endpoint or "").strip()
    if not endpoint:
        raise InvalidRequest("Shop domain required", param="shopDomain")
    return endpoint


class CheckoutProtocolClient:
    def __init__(
        self,
        token_manager: TokenManager,
        timeout: float = DEFAULT_TIMEOUT,
        card_vault_url: str = CARD_VAULT_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_manager = token_manager
        self.timeout = timeout
        self.card_vault_url = card_vault_url
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _bearer_token(self) -> str:
        token = await self.token_manager.get_token()
        if not token:
            raise Unconfigured("Catalog API credentials are not configured")
        return token

    async def create_checkout(
        self, envelope: CheckoutEnvelope, merchant_endpoint: str
    ) -> NormalizedCheckoutResult:
        return await self._call(envelope, merchant_endpoint, CheckoutMethod.CREATE)

    async def complete_checkout(
        self, envelope: CheckoutEnvelope, merchant_endpoint: str
    ) -> NormalizedCheckoutResult:
        return await self._call(envelope, merchant_endpoint, CheckoutMethod.COMPLETE)

    async def _call(
        self,
        envelope: CheckoutEnvelope,
        merchant_endpoint: str,
        expected: CheckoutMethod,
    ) -> NormalizedCheckoutResult:
        endpoint = _require_merchant(merchant_endpoint)
        if envelope.method is not expected:
            raise InvalidRequest(
                f"Envelope is for {envelope.method.value}, expected {expected.value}"
            )

        token = await self._bearer_token()
        url = merchant_mcp_url(endpoint)
        body = envelope.to_jsonrpc()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

        logger.info("[UCP] POST %s (%s, key=%s)", url, expected.value, envelope.idempotency_key)
        logger.debug("[UCP] Body: %s", body)
        try:
            async with self._http() as client:
                resp = await client.post(url, json=body, headers=headers)
        except httpx.TransportError as exc:
            logger.warning("[UCP] %s unreachable: %s", url, exc)
            raise RemoteUnavailable(f"{url} unreachable: {exc}") from exc

        data = self._json_or_reject(resp, url)
        logger.debug("[UCP] Response: %s", data)
        if resp.status_code >= 400 and not (isinstance(data, dict) and "error" in data):
            raise RemoteRejected(
                f"{url} answered HTTP {resp.status_code}",
                code=resp.status_code,
                raw_detail=resp.text[:500] or None,
                status_code=resp.status_code,
            )
        return parse_checkout_reply(data, status_code=resp.status_code)

    @staticmethod
    def _json_or_reject(resp: httpx.Response, url: str) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteRejected(
                f"{url} returned a non-JSON body (HTTP {resp.status_code})",
                code=resp.status_code,
                raw_detail=resp.text[:500] or None,
                status_code=resp.status_code,
            ) from exc

    async def tokenize_payment_card(self, card: CardDetails, merchant_endpoint: str) -> str:
        """
        Exchange raw card fields for a card-vault session id scoped to the
        merchant. The call is unauthenticated and the card payload lives only
        for its duration.
        """
        endpoint = _require_merchant(merchant_endpoint)
        number = card.number.get_secret_value().replace(" ", "")
        cvv = card.cvv.get_secret_value()
        if not (number and card.name and card.month and card.year and cvv):
            raise InvalidRequest("All card fields are required", param="card")

        payload = {
            "credit_card": {
                "number": number,
                "name": card.name,
                "month": int(card.month),
                "year": int(card.year),
                "verification_value": cvv,
                "start_month": None,
                "start_year": None,
                "issue_number": "",
            },
            "payment_session_scope": f"https://{endpoint}",
        }
        logger.info("[CardServer] Tokenizing card for %s", endpoint)
        try:
            async with self._http() as client:
                resp = await client.post(self.card_vault_url, json=payload)
        except httpx.TransportError as exc:
            # exc carries the request; report only its type
            raise RemoteUnavailable(f"card vault unreachable ({type(exc).__name__})") from None
        finally:
            del payload, number, cvv

        try:
            data = resp.json()
        except ValueError:
            data = None
        session_id = data.get("id") if isinstance(data, dict) else None
        if resp.status_code < 400 and session_id:
            return session_id

        error = data.get("error") if isinstance(data, dict) else None
        logger.warning("[CardServer] Tokenization failed (HTTP %s)", resp.status_code)
        raise RemoteRejected(
            "Card tokenization failed",
            code=resp.status_code,
            raw_detail=error if isinstance(error, str) else None,
            status_code=resp.status_code,
        )
