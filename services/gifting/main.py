"""
Gifting Service — FastAPI app for group gift checkout.

Hosts the group/recipient store, the catalog search proxy, the UCP agent
profile document, and the checkout endpoints that drive a merchant's UCP MCP
endpoint through create → tokenize card → complete, or hand off to an
embedded checkout.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional, Union

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from gift_checkout import (
    UCP_VERSION,
    AuthError,
    BillingAddress,
    CardDetails,
    CheckoutError,
    CheckoutProtocolClient,
    CheckoutRequestBuilder,
    EmbeddedCheckoutUrlBuilder,
    GiftCheckoutService,
    GroupNotFound,
    InvalidInput,
    InvalidRequest,
    ProtocolError,
    Recipient,
    RemoteRejected,
    TokenManager,
    Unconfigured,
    create_token_manager,
)
from gift_checkout.client import merchant_mcp_url
from gift_checkout.models import Group
from services.gifting.catalog import search_products
from services.gifting.store import InMemoryGroupStore


load_dotenv()

PORT = int(os.getenv("PORT", "3000"))
HOST = os.getenv("HOST", "0.0.0.0")
AGENT_PROFILE_URL = os.getenv("AGENT_PROFILE_URL") or f"https://localhost:{PORT}/profiles/gift-agent.json"
GOOGLE_PLACES_API_KEY = os.getenv("GOOGLE_PLACES_API_KEY", "")
HTTP_TIMEOUT = float(os.getenv("GIFT_HTTP_TIMEOUT", "30"))
SSL_KEYFILE = os.getenv("SSL_KEYFILE", "key.pem")
SSL_CERTFILE = os.getenv("SSL_CERTFILE", "cert.pem")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

ACCESS_DISABLED_MESSAGE = (
    "This merchant has disabled agent-initiated checkout. "
    "Open the product on the merchant's site to buy it directly."
)

AGENT_PROFILE = {
    "name": "Catalog Gifting Agent",
    "description": "A gift registry agent that coordinates group purchases with recipient shipping addresses.",
    "version": "1.0.0",
    "ucp": {
        "version": UCP_VERSION,
        "capabilities": {
            "dev.ucp.shopping.checkout": [{"version": UCP_VERSION}],
            "dev.ucp.shopping.fulfillment": [{"version": UCP_VERSION}],
        },
        "delegations": ["fulfillment.address_change"],
    },
}

logger = logging.getLogger(__name__)


# ── Wiring ───────────────────────────────────────────────────────────────

token_manager = create_token_manager(timeout=HTTP_TIMEOUT)
store = InMemoryGroupStore()
checkout_service = GiftCheckoutService(
    groups=store,
    builder=CheckoutRequestBuilder(profile_url=AGENT_PROFILE_URL),
    client=CheckoutProtocolClient(token_manager, timeout=HTTP_TIMEOUT),
    embedded=EmbeddedCheckoutUrlBuilder(token_manager),
)


def get_store() -> InMemoryGroupStore:
    return store


def get_token_manager() -> TokenManager:
    return token_manager


def get_checkout_service() -> GiftCheckoutService:
    return checkout_service


# ── Request bodies ───────────────────────────────────────────────────────

class CreateGroupRequest(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class AddMemberRequest(CreateGroupRequest):
    pass


class CreateCheckoutRequest(BaseModel):
    groupId: Optional[str] = None
    variantId: Optional[str] = None
    quantity: Optional[int] = None
    shopDomain: Optional[str] = None


class TokenizeCardRequest(BaseModel):
    # loose types so a bad field never produces a 422 that echoes card data
    cardNumber: Optional[str] = None
    name: Optional[str] = None
    month: Optional[Union[int, str]] = None
    year: Optional[Union[int, str]] = None
    cvv: Optional[str] = None
    shopDomain: Optional[str] = None


class CompleteCheckoutRequest(BaseModel):
    checkoutId: Optional[str] = None
    sessionToken: Optional[str] = None
    billingAddress: Optional[BillingAddress] = None
    shopDomain: Optional[str] = None


class EmbeddedUrlRequest(BaseModel):
    continue_url: Optional[str] = None


# ── Error mapping ────────────────────────────────────────────────────────

def _status_for(exc: CheckoutError) -> int:
    if isinstance(exc, GroupNotFound):
        return 404
    if isinstance(exc, (InvalidRequest, InvalidInput)):
        return 400
    if isinstance(exc, Unconfigured):
        return 503
    return 502


def _error_response(exc: CheckoutError, **extra: Any) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": str(exc), "errorType": exc.kind}
    if isinstance(exc, Unconfigured):
        content["error"] = f"Checkout is not configured: {exc}"
    elif isinstance(exc, AuthError):
        content["error"] = f"Failed to get auth token: {exc}"
    elif isinstance(exc, RemoteRejected):
        content["code"] = exc.code
    if isinstance(exc, ProtocolError):
        content["accessDisabled"] = exc.is_access_disabled
        if exc.is_access_disabled:
            content["userMessage"] = ACCESS_DISABLED_MESSAGE
    content.update(extra)
    return JSONResponse(status_code=_status_for(exc), content=content)


def _group_info(group: Group) -> dict:
    recipient = group.recipient
    return {
        "leadEmail": group.lead.email,
        "recipientName": recipient.full_name if recipient else None,
        "recipientAddress": recipient.one_line_address if recipient else None,
    }


def _group_json(group: Group) -> dict:
    return group.model_dump(mode="json", by_alias=True)


# ── App ──────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    if not token_manager.configured:
        logger.warning("Catalog API credentials not configured; checkout is disabled and search uses mock data")
    yield


app = FastAPI(
    title="Gifting Service",
    description="Group gift checkout over UCP (MCP binding + Embedded Checkout)",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health(tokens: TokenManager = Depends(get_token_manager)):
    return {"status": "ok", "service": "gifting", "catalog_configured": tokens.configured}


@app.get("/profiles/gift-agent.json")
async def agent_profile():
    """UCP agent profile referenced from every checkout request's meta."""
    return AGENT_PROFILE


@app.get("/api/config")
async def public_config():
    return {"googlePlacesApiKey": GOOGLE_PLACES_API_KEY}


@app.get("/api/products")
async def products_endpoint(
    q: str = Query(""),
    product_filter: str = Query("", alias="filter"),
    tokens: TokenManager = Depends(get_token_manager),
):
    result = await search_products(tokens, query=q.strip(), product_type=product_filter.strip())
    return result.model_dump(mode="json")


@app.post("/api/groups")
async def create_group(body: CreateGroupRequest, groups: InMemoryGroupStore = Depends(get_store)):
    if not body.firstName or not body.lastName or not body.email:
        return JSONResponse(status_code=400, content={"error": "Missing lead info"})
    group = groups.create_group(body.firstName, body.lastName, body.email, body.phone)
    return {"group": _group_json(group)}


@app.get("/api/groups/{group_id}")
async def get_group(group_id: str, groups: InMemoryGroupStore = Depends(get_store)):
    group = groups.get_group(group_id)
    if group is None:
        return JSONResponse(status_code=404, content={"error": "Group not found"})
    return {"group": _group_json(group)}


@app.post("/api/groups/{group_id}/members")
async def add_member(group_id: str, body: AddMemberRequest, groups: InMemoryGroupStore = Depends(get_store)):
    if groups.get_group(group_id) is None:
        return JSONResponse(status_code=404, content={"error": "Group not found"})
    if not body.email:
        return JSONResponse(status_code=400, content={"error": "Member email required"})
    member = groups.add_member(group_id, body.email, body.firstName, body.lastName, body.phone)
    return {"member": member.model_dump(mode="json", by_alias=True)}


@app.post("/api/groups/{group_id}/recipient")
async def set_recipient(group_id: str, body: Recipient, groups: InMemoryGroupStore = Depends(get_store)):
    recipient = groups.set_recipient(group_id, body)
    if recipient is None:
        return JSONResponse(status_code=404, content={"error": "Group not found"})
    return {"recipient": recipient.model_dump(mode="json", by_alias=True)}


@app.post("/api/create-checkout")
async def create_checkout(
    body: CreateCheckoutRequest,
    service: GiftCheckoutService = Depends(get_checkout_service),
):
    try:
        group = service.load_group(body.groupId or "")
        envelope = service.prepare_create(group, body.variantId, body.quantity, body.shopDomain)
    except CheckoutError as exc:
        return _error_response(exc)

    context = {
        "requestPayload": envelope.payload,
        "ucpEndpoint": merchant_mcp_url(body.shopDomain.strip()),
        "groupInfo": _group_info(group),
    }
    try:
        result = await service.submit(envelope, body.shopDomain)
    except CheckoutError as exc:
        logger.warning("[UCP] create_checkout failed for group %s: %s", group.id, exc)
        return _error_response(exc, **context)

    return {
        "success": True,
        "checkoutUrl": result.continuation_url,
        "checkoutId": result.checkout_id,
        "status": result.status,
        "messages": result.messages,
        "mcpResponse": result.body,
        **context,
    }


@app.post("/api/tokenize-card")
async def tokenize_card(
    body: TokenizeCardRequest,
    service: GiftCheckoutService = Depends(get_checkout_service),
):
    try:
        if not (body.cardNumber and body.name and body.month and body.year and body.cvv):
            raise InvalidRequest("All card fields are required", param="card")
        try:
            card = CardDetails(
                number=body.cardNumber,
                name=body.name,
                month=int(body.month),
                year=int(body.year),
                cvv=body.cvv,
            )
        except (ValueError, ValidationError):
            # no exception chaining: the validation error would carry card input
            raise InvalidRequest("Card expiry month and year must be numeric", param="card") from None
        session_token = await service.tokenize_card(card, body.shopDomain)
    except CheckoutError as exc:
        return _error_response(exc)
    finally:
        body.cardNumber = body.cvv = None

    return {"success": True, "sessionToken": session_token}


@app.post("/api/complete-checkout")
async def complete_checkout(
    body: CompleteCheckoutRequest,
    service: GiftCheckoutService = Depends(get_checkout_service),
):
    try:
        attempt = await service.complete_checkout(
            body.checkoutId, body.sessionToken, body.billingAddress, body.shopDomain
        )
    except CheckoutError as exc:
        logger.warning("[UCP] complete_checkout failed for %s: %s", body.checkoutId, exc)
        return _error_response(exc)

    return {
        "success": True,
        "status": attempt.result.status,
        "orderId": attempt.result.order_id,
        "messages": attempt.result.messages,
        "mcpResponse": attempt.result.body,
    }


@app.post("/api/embedded-checkout-url")
async def embedded_checkout_url(
    body: EmbeddedUrlRequest,
    service: GiftCheckoutService = Depends(get_checkout_service),
):
    if not body.continue_url:
        return JSONResponse(status_code=400, content={"error": "continue_url is required"})
    try:
        embedded_url = await service.build_embedded_url(body.continue_url)
    except CheckoutError as exc:
        logger.warning("[ECP] Error building URL: %s", exc)
        return _error_response(exc)
    return {"embedded_url": embedded_url}


def run_server(host: str = HOST, port: int = PORT):
    """Run the gifting service, over HTTPS when a key and certificate are present."""
    import uvicorn

    logging.basicConfig(level=LOG_LEVEL)
    ssl_options = {}
    if os.path.exists(SSL_KEYFILE) and os.path.exists(SSL_CERTFILE):
        # the embedded checkout CSP only allows HTTPS hosts to iframe it
        ssl_options = {"ssl_keyfile": SSL_KEYFILE, "ssl_certfile": SSL_CERTFILE}
        logger.info("Starting gifting service on https://%s:%s", host, port)
    else:
        logger.warning("No TLS key/cert found; starting on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port, **ssl_options)


if __name__ == "__main__":
    run_server()
