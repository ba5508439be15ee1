"""
Gift Checkout Pydantic Models — UCP checkout over MCP (2026-01-11).

Covers the group-side inputs (lead, recipient, line item), the protocol
envelope sent to merchant endpoints, and the normalized result handed back
to callers.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic.alias_generators import to_camel


UCP_VERSION = "2026-01-11"
JSONRPC_VERSION = "2.0"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CheckoutMethod(str, Enum):
    CREATE = "create_checkout"
    COMPLETE = "complete_checkout"


# ---------------------------------------------------------------------------
# Token cache
# ---------------------------------------------------------------------------

class TokenState(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    expires_at: float  # unix seconds

    def is_fresh(self, now: float, margin: float) -> bool:
        return now < self.expires_at - margin


# ---------------------------------------------------------------------------
# Group-side inputs
# ---------------------------------------------------------------------------

# The HTTP surface speaks camelCase; Python code uses field names.
CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Contact(BaseModel):
    model_config = CAMEL

    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_lead: bool = False


class Recipient(BaseModel):
    model_config = CAMEL

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    province_code: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def one_line_address(self) -> str:
        return f"{self.address1}, {self.city}, {self.state} {self.postal_code}"


class Group(BaseModel):
    model_config = CAMEL

    id: str
    lead: Contact
    members: list[Contact] = []
    recipient: Optional[Recipient] = None


class LineItemInput(BaseModel):
    item_id: str
    quantity: int = Field(default=1, ge=1)


class PostalAddress(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: str = ""
    street_address: Optional[str] = None
    address_locality: Optional[str] = None
    address_region: Optional[str] = None
    postal_code: Optional[str] = None
    address_country: str = "US"


class ShippingDestination(PostalAddress):
    pass


class BillingAddress(BaseModel):
    model_config = CAMEL

    first_name: Optional[str] = ""
    last_name: Optional[str] = ""
    phone: Optional[str] = ""
    address1: Optional[str] = ""
    city: Optional[str] = ""
    state: Optional[str] = ""
    postal_code: Optional[str] = ""
    country: Optional[str] = "US"


class CardDetails(BaseModel):
    """Raw card fields. Only ever held for the duration of one tokenization call."""

    number: SecretStr
    name: str
    month: int
    year: int
    cvv: SecretStr


# ---------------------------------------------------------------------------
# Tool arguments (UCP wire shape, snake_case)
# ---------------------------------------------------------------------------

class ItemRef(BaseModel):
    id: str


class LineItem(BaseModel):
    quantity: int = Field(ge=1)
    item: ItemRef


class Buyer(BaseModel):
    email: Optional[str] = None
    phone_number: str = ""


class FulfillmentMethod(BaseModel):
    type: str = "shipping"
    destinations: list[ShippingDestination]


class Fulfillment(BaseModel):
    methods: list[FulfillmentMethod]


class CheckoutDraft(BaseModel):
    idempotency_key: str
    currency: str
    line_items: list[LineItem] = Field(min_length=1)
    buyer: Buyer
    fulfillment: Fulfillment


class CreateArgs(BaseModel):
    """Arguments of the ``create_checkout`` tool."""

    meta: dict[str, Any]
    checkout: CheckoutDraft


class Credential(BaseModel):
    type: str
    token: str


class PaymentInstrument(BaseModel):
    id: str = "instrument_1"
    handler_id: str
    type: str = "card"
    selected: bool = True
    credential: Credential
    billing_address: PostalAddress


class Payment(BaseModel):
    instruments: list[PaymentInstrument]


class CompleteArgs(BaseModel):
    """Arguments of the ``complete_checkout`` tool."""

    meta: dict[str, Any]
    id: str
    payment: Payment


# ---------------------------------------------------------------------------
# Protocol envelope
# ---------------------------------------------------------------------------

class CheckoutEnvelope(BaseModel):
    """
    One ``tools/call`` request to a merchant's UCP MCP endpoint.

    Envelopes are immutable. Resubmitting the same envelope is how a caller
    retries the same logical operation under the same idempotency key.
    """

    model_config = ConfigDict(frozen=True)

    protocol_version: str = UCP_VERSION
    method: CheckoutMethod
    idempotency_key: str
    request_id: int
    payload: dict[str, Any]

    def to_jsonrpc(self) -> dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "method": "tools/call",
            "id": self.request_id,
            "params": {
                "name": self.method.value,
                "arguments": copy.deepcopy(self.payload),
            },
        }


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class NormalizedCheckoutResult(BaseModel):
    continuation_url: Optional[str] = None
    checkout_id: Optional[str] = None
    status: Optional[str] = None
    order_id: Optional[str] = None
    messages: list[Any] = []
    body: Any = None


class EmbeddedUrlParams(BaseModel):
    ec_version: str = UCP_VERSION
    ec_auth: str
    ec_delegate: str = "fulfillment.address_change"
    skip_shop_pay: str = "true"
