"""
Checkout request builder.

Turns a group snapshot plus a line item (or a checkout id plus a payment
session token) into a `CheckoutEnvelope`. No I/O happens here.

The buyer on every create request is the group lead. The recipient only
appears as the shipping destination, so order and shipping emails go to the
lead and the gift stays a surprise.
"""

from __future__ import annotations

import uuid
from typing import Callable, Optional

from gift_checkout.models import (
    UCP_VERSION,
    BillingAddress,
    Buyer,
    CheckoutDraft,
    CheckoutEnvelope,
    CheckoutMethod,
    CompleteArgs,
    CreateArgs,
    Credential,
    Fulfillment,
    FulfillmentMethod,
    Group,
    ItemRef,
    LineItem,
    LineItemInput,
    Payment,
    PaymentInstrument,
    PostalAddress,
    Recipient,
    ShippingDestination,
)


DEFAULT_CURRENCY = "USD"
DEFAULT_COUNTRY_CODE = "US"
CARD_HANDLER_ID = "shopify.card"
CARD_CREDENTIAL_TYPE = "shopify_token"

CREATE_REQUEST_ID = 1
COMPLETE_REQUEST_ID = 2

# Only these countries are recognised; everything else ships as "US".
COUNTRY_CODES = {
    "united states": "US",
    "us": "US",
    "canada": "CA",
    "ca": "CA",
}


def normalize_country(country: Optional[str]) -> str:
    if not country:
        return DEFAULT_COUNTRY_CODE
    return COUNTRY_CODES.get(country.strip().lower(), DEFAULT_COUNTRY_CODE)


def clean_item_id(item_id: str) -> str:
    """Drop tracking parameters such as ``?shop=12345`` from a variant id."""
    return item_id.split("?", 1)[0]


def destination_from_recipient(recipient: Recipient) -> ShippingDestination:
    return ShippingDestination(
        first_name=recipient.first_name,
        last_name=recipient.last_name,
        phone_number=recipient.phone or "",
        street_address=recipient.address1,
        address_locality=recipient.city,
        address_region=recipient.province_code or recipient.state,
        postal_code=recipient.postal_code,
        address_country=normalize_country(recipient.country),
    )


def _new_idempotency_key() -> str:
    return str(uuid.uuid4())


class CheckoutRequestBuilder:
    def __init__(
        self,
        profile_url: str,
        key_factory: Callable[[], str] = _new_idempotency_key,
        protocol_version: str = UCP_VERSION,
        currency: str = DEFAULT_CURRENCY,
    ):
        self.profile_url = profile_url
        self.key_factory = key_factory
        self.protocol_version = protocol_version
        self.currency = currency

    def _agent_meta(self) -> dict:
        return {"ucp-agent": {"profile": self.profile_url}}

    def build_create(
        self,
        group: Group,
        line_item: LineItemInput,
        destination: Optional[ShippingDestination] = None,
        idempotency_key: Optional[str] = None,
    ) -> CheckoutEnvelope:
        """
        Build a ``create_checkout`` envelope.

        ``group`` must already have a recipient unless ``destination`` is
        given explicitly; the caller validates that before getting here.
        """
        if destination is None:
            destination = destination_from_recipient(group.recipient)
        recipient_phone = group.recipient.phone if group.recipient else None
        key = idempotency_key or self.key_factory()

        arguments = CreateArgs(
            meta=self._agent_meta(),
            checkout=CheckoutDraft(
                idempotency_key=key,
                currency=self.currency,
                line_items=[
                    LineItem(
                        quantity=line_item.quantity,
                        item=ItemRef(id=clean_item_id(line_item.item_id)),
                    )
                ],
                buyer=Buyer(email=group.lead.email, phone_number=recipient_phone or ""),
                fulfillment=Fulfillment(
                    methods=[FulfillmentMethod(destinations=[destination])]
                ),
            ),
        )
        return CheckoutEnvelope(
            protocol_version=self.protocol_version,
            method=CheckoutMethod.CREATE,
            idempotency_key=key,
            request_id=CREATE_REQUEST_ID,
            payload=arguments.model_dump(),
        )

    def build_complete(
        self,
        checkout_id: str,
        session_token: str,
        billing_address: Optional[BillingAddress] = None,
        idempotency_key: Optional[str] = None,
    ) -> CheckoutEnvelope:
        """Build a ``complete_checkout`` envelope paying with a tokenized card."""
        billing = billing_address or BillingAddress()
        key = idempotency_key or self.key_factory()

        meta = {"idempotency-key": key}
        meta.update(self._agent_meta())
        arguments = CompleteArgs(
            meta=meta,
            id=checkout_id,
            payment=Payment(
                instruments=[
                    PaymentInstrument(
                        handler_id=CARD_HANDLER_ID,
                        credential=Credential(type=CARD_CREDENTIAL_TYPE, token=session_token),
                        billing_address=PostalAddress(
                            first_name=billing.first_name or "",
                            last_name=billing.last_name or "",
                            phone_number=billing.phone or "",
                            street_address=billing.address1 or "",
                            address_locality=billing.city or "",
                            address_region=billing.state or "",
                            postal_code=billing.postal_code or "",
                            address_country=billing.country or DEFAULT_COUNTRY_CODE,
                        ),
                    )
                ]
            ),
        )
        return CheckoutEnvelope(
            protocol_version=self.protocol_version,
            method=CheckoutMethod.COMPLETE,
            idempotency_key=key,
            request_id=COMPLETE_REQUEST_ID,
            payload=arguments.model_dump(),
        )
