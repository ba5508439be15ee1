"""
Gift checkout facade.

Composes group lookup, request building, the protocol client and the
embedded URL builder into the operations exposed to HTTP handlers and other
consumers.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import Optional

from gift_checkout.builder import CheckoutRequestBuilder
from gift_checkout.client import CheckoutProtocolClient, merchant_mcp_url
from gift_checkout.embedded import EmbeddedCheckoutUrlBuilder
from gift_checkout.errors import GroupNotFound, InvalidRequest
from gift_checkout.models import (
    BillingAddress,
    CardDetails,
    CheckoutEnvelope,
    CheckoutMethod,
    Group,
    LineItemInput,
    NormalizedCheckoutResult,
)


logger = logging.getLogger(__name__)


class GroupLookup(abc.ABC):
    """Read side of the group store, as the checkout core needs it."""

    @abc.abstractmethod
    def get_group(self, group_id: str) -> Optional[Group]:
        """Return a snapshot of the group, or None if it does not exist."""
        ...


@dataclass(frozen=True)
class CheckoutAttempt:
    envelope: CheckoutEnvelope
    endpoint: str
    result: NormalizedCheckoutResult


class GiftCheckoutService:
    def __init__(
        self,
        groups: GroupLookup,
        builder: CheckoutRequestBuilder,
        client: CheckoutProtocolClient,
        embedded: EmbeddedCheckoutUrlBuilder,
    ):
        self.groups = groups
        self.builder = builder
        self.client = client
        self.embedded = embedded

    def load_group(self, group_id: str) -> Group:
        group = self.groups.get_group(group_id)
        if group is None:
            raise GroupNotFound(group_id)
        # snapshot: later edits to the stored group never reach this request
        return group.model_copy(deep=True)

    def prepare_create(
        self,
        group: Group,
        item_id: Optional[str],
        quantity: Optional[int],
        merchant: Optional[str],
    ) -> CheckoutEnvelope:
        """Validate a create request and build its envelope without any I/O."""
        if group.recipient is None:
            raise InvalidRequest("Recipient not set", param="recipient")
        if not item_id:
            raise InvalidRequest("Variant ID required", param="variantId")
        if not (merchant or "").strip():
            raise InvalidRequest("Shop domain required", param="shopDomain")
        if quantity is not None and quantity < 1:
            raise InvalidRequest("Quantity must be at least 1", param="quantity")
        line_item = LineItemInput(item_id=item_id, quantity=quantity or 1)
        return self.builder.build_create(group, line_item)

    async def submit(self, envelope: CheckoutEnvelope, merchant: str) -> NormalizedCheckoutResult:
        """
        Send an already-built envelope. Submitting the same envelope again
        retries the same logical operation under the same idempotency key.
        """
        if envelope.method is CheckoutMethod.COMPLETE:
            return await self.client.complete_checkout(envelope, merchant)
        return await self.client.create_checkout(envelope, merchant)

    async def create_checkout(
        self,
        group_id: str,
        item_id: Optional[str],
        quantity: Optional[int],
        merchant: Optional[str],
    ) -> CheckoutAttempt:
        group = self.load_group(group_id)
        envelope = self.prepare_create(group, item_id, quantity, merchant)
        merchant = merchant.strip()
        result = await self.submit(envelope, merchant)
        logger.info(
            "Checkout %s created for group %s (status=%s)",
            result.checkout_id,
            group_id,
            result.status,
        )
        return CheckoutAttempt(envelope=envelope, endpoint=merchant_mcp_url(merchant), result=result)

    def prepare_complete(
        self,
        checkout_id: Optional[str],
        session_token: Optional[str],
        billing_address: Optional[BillingAddress],
        merchant: Optional[str],
    ) -> CheckoutEnvelope:
        if not checkout_id or not session_token or not (merchant or "").strip():
            raise InvalidRequest("checkoutId, sessionToken, and shopDomain are required")
        return self.builder.build_complete(checkout_id, session_token, billing_address)

    async def complete_checkout(
        self,
        checkout_id: Optional[str],
        session_token: Optional[str],
        billing_address: Optional[BillingAddress],
        merchant: Optional[str],
    ) -> CheckoutAttempt:
        envelope = self.prepare_complete(checkout_id, session_token, billing_address, merchant)
        merchant = merchant.strip()
        result = await self.submit(envelope, merchant)
        logger.info("Checkout %s completed (status=%s, order=%s)", checkout_id, result.status, result.order_id)
        return CheckoutAttempt(envelope=envelope, endpoint=merchant_mcp_url(merchant), result=result)

    async def tokenize_card(self, card: CardDetails, merchant: Optional[str]) -> str:
        return await self.client.tokenize_payment_card(card, merchant)

    async def build_embedded_url(self, continuation_url: str) -> str:
        return await self.embedded.build(continuation_url)
