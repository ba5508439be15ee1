"""
Gift Checkout — group gifting on top of the Universal Commerce Protocol.

A group lead picks a product, the group's recipient becomes the shipping
destination, and checkout runs against the merchant's UCP MCP endpoint with
the lead as the buyer, so the recipient never receives order emails.

Example usage:
    from gift_checkout import (
        CheckoutProtocolClient,
        CheckoutRequestBuilder,
        create_token_manager,
    )

    tokens = create_token_manager()
    builder = CheckoutRequestBuilder(profile_url="https://host/profiles/gift-agent.json")
    client = CheckoutProtocolClient(tokens)

    envelope = builder.build_create(group, LineItemInput(item_id="gid://...", quantity=1))
    result = await client.create_checkout(envelope, "shop.example.com")
"""

__version__ = "0.1.0"

# Export main models
from gift_checkout.models import (
    UCP_VERSION,
    BillingAddress,
    CardDetails,
    CheckoutEnvelope,
    CheckoutMethod,
    CompleteArgs,
    Contact,
    CreateArgs,
    EmbeddedUrlParams,
    Group,
    LineItemInput,
    NormalizedCheckoutResult,
    Recipient,
    ShippingDestination,
    TokenState,
)

# Export errors
from gift_checkout.errors import (
    AuthError,
    CheckoutError,
    GroupNotFound,
    InvalidInput,
    InvalidRequest,
    ProtocolError,
    RemoteRejected,
    RemoteUnavailable,
    Unconfigured,
)

# Export protocol components
from gift_checkout.tokens import TokenManager, create_token_manager
from gift_checkout.builder import CheckoutRequestBuilder, clean_item_id, normalize_country
from gift_checkout.client import CheckoutProtocolClient
from gift_checkout.parser import ReplyKind, classify_reply, parse_checkout_reply
from gift_checkout.embedded import EmbeddedCheckoutUrlBuilder
from gift_checkout.service import CheckoutAttempt, GiftCheckoutService, GroupLookup

__all__ = [
    "__version__",
    # Models
    "UCP_VERSION",
    "BillingAddress",
    "CardDetails",
    "CheckoutEnvelope",
    "CheckoutMethod",
    "CompleteArgs",
    "Contact",
    "CreateArgs",
    "EmbeddedUrlParams",
    "Group",
    "LineItemInput",
    "NormalizedCheckoutResult",
    "Recipient",
    "ShippingDestination",
    "TokenState",
    # Errors
    "AuthError",
    "CheckoutError",
    "GroupNotFound",
    "InvalidInput",
    "InvalidRequest",
    "ProtocolError",
    "RemoteRejected",
    "RemoteUnavailable",
    "Unconfigured",
    # Protocol Components
    "TokenManager",
    "create_token_manager",
    "CheckoutRequestBuilder",
    "clean_item_id",
    "normalize_country",
    "CheckoutProtocolClient",
    "ReplyKind",
    "classify_reply",
    "parse_checkout_reply",
    "EmbeddedCheckoutUrlBuilder",
    # Facade
    "CheckoutAttempt",
    "GiftCheckoutService",
    "GroupLookup",
]
