import httpx
import pytest

from gift_checkout.client import CARD_VAULT_URL, CheckoutProtocolClient
from gift_checkout.errors import (
    InvalidRequest,
    ProtocolError,
    RemoteRejected,
    RemoteUnavailable,
    Unconfigured,
)
from gift_checkout.models import CardDetails, LineItemInput
from gift_checkout.tokens import TokenManager


pytestmark = pytest.mark.asyncio

CARD_NUMBER = "4242 4242 4242 4242"


def _card():
    return CardDetails(number=CARD_NUMBER, name="A B", month=12, year=2030, cvv="123")


async def test_create_posts_envelope_to_merchant_endpoint(protocol_client, builder, gift_group, remote):
    envelope = builder.build_create(gift_group, LineItemInput(item_id="v1"))

    result = await protocol_client.create_checkout(envelope, "shop.example")

    assert result.checkout_id == "chk_1"
    assert result.status == "requires_escalation"
    assert result.continuation_url == "https://shop.example/checkout/1"
    [request] = remote.requests_to("/api/ucp/mcp")
    assert str(request.url) == "https://shop.example/api/ucp/mcp"
    assert request.headers["Authorization"] == "Bearer tok_1"
    assert remote.bodies_to("/api/ucp/mcp")[0] == envelope.to_jsonrpc()


async def test_complete_uses_complete_envelope(protocol_client, builder, remote):
    envelope = builder.build_complete("chk_1", "sess_abc")

    await protocol_client.complete_checkout(envelope, "shop.example")

    body = remote.bodies_to("/api/ucp/mcp")[0]
    assert body["params"]["name"] == "complete_checkout"


async def test_wrong_envelope_method_is_rejected_before_network(protocol_client, builder, remote):
    envelope = builder.build_complete("chk_1", "sess_abc")

    with pytest.raises(InvalidRequest):
        await protocol_client.create_checkout(envelope, "shop.example")
    assert remote.requests == []


async def test_missing_merchant_never_touches_network(protocol_client, builder, gift_group, remote):
    envelope = builder.build_create(gift_group, LineItemInput(item_id="v1"))

    with pytest.raises(InvalidRequest):
        await protocol_client.create_checkout(envelope, "")
    assert remote.requests == []


async def test_no_credentials_is_unconfigured(builder, gift_group, remote):
    client = CheckoutProtocolClient(TokenManager(None, None), transport=remote.transport())
    envelope = builder.build_create(gift_group, LineItemInput(item_id="v1"))

    with pytest.raises(Unconfigured):
        await client.create_checkout(envelope, "shop.example")
    assert remote.requests == []


async def test_transport_failure_is_remote_unavailable(protocol_client, builder, gift_group, remote):
    remote.mcp_response = httpx.ConnectTimeout("timed out")
    envelope = builder.build_create(gift_group, LineItemInput(item_id="v1"))

    with pytest.raises(RemoteUnavailable):
        await protocol_client.create_checkout(envelope, "shop.example")


async def test_retrying_the_same_envelope_reuses_the_idempotency_key(protocol_client, builder, gift_group, remote):
    remote.mcp_response = httpx.ReadTimeout("timed out")
    envelope = builder.build_create(gift_group, LineItemInput(item_id="v1"))
    with pytest.raises(RemoteUnavailable):
        await protocol_client.create_checkout(envelope, "shop.example")

    remote.mcp_response = httpx.Response(
        200, json={"jsonrpc": "2.0", "id": 1, "result": {"content": [{"type": "text", "text": '{"id":"chk_2"}'}]}}
    )
    result = await protocol_client.create_checkout(envelope, "shop.example")

    keys = [b["params"]["arguments"]["checkout"]["idempotency_key"] for b in remote.bodies_to("/api/ucp/mcp")]
    assert result.checkout_id == "chk_2"
    assert keys == [envelope.idempotency_key, envelope.idempotency_key]


async def test_jsonrpc_error_is_protocol_error(protocol_client, builder, gift_group, remote):
    remote.mcp_response = httpx.Response(
        200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "Denied", "data": "Access disabled."}}
    )
    envelope = builder.build_create(gift_group, LineItemInput(item_id="v1"))

    with pytest.raises(ProtocolError) as excinfo:
        await protocol_client.create_checkout(envelope, "shop.example")
    assert excinfo.value.is_access_disabled is True
    assert excinfo.value.status_code == 200


async def test_http_error_with_jsonrpc_error_body_is_protocol_error(protocol_client, builder, gift_group, remote):
    remote.mcp_response = httpx.Response(
        403, json={"jsonrpc": "2.0", "id": 1, "error": {"code": 403, "message": "Forbidden"}}
    )
    envelope = builder.build_create(gift_group, LineItemInput(item_id="v1"))

    with pytest.raises(ProtocolError) as excinfo:
        await protocol_client.create_checkout(envelope, "shop.example")
    assert excinfo.value.code == 403


async def test_http_error_without_body_is_remote_rejected(protocol_client, builder, gift_group, remote):
    remote.mcp_response = httpx.Response(502, text="Bad gateway")
    envelope = builder.build_create(gift_group, LineItemInput(item_id="v1"))

    with pytest.raises(RemoteRejected) as excinfo:
        await protocol_client.create_checkout(envelope, "shop.example")
    assert not isinstance(excinfo.value, ProtocolError)
    assert excinfo.value.status_code == 502


async def test_tokenize_card_is_unauthenticated_and_scoped(protocol_client, remote):
    session_token = await protocol_client.tokenize_payment_card(_card(), "shop.example")

    assert session_token == "sess_abc"
    [request] = remote.requests
    assert str(request.url) == CARD_VAULT_URL
    assert "Authorization" not in request.headers
    body = remote.bodies_to("/sessions")[0]
    assert body["payment_session_scope"] == "https://shop.example"
    assert body["credit_card"]["number"] == "4242424242424242"
    assert body["credit_card"]["month"] == 12
    assert body["credit_card"]["verification_value"] == "123"


async def test_tokenize_rejection_never_carries_card_data(protocol_client, remote):
    remote.vault_response = httpx.Response(422, json={"error": "card declined", "echo": "4242424242424242"})

    with pytest.raises(RemoteRejected) as excinfo:
        await protocol_client.tokenize_payment_card(_card(), "shop.example")

    error = excinfo.value
    assert error.raw_detail == "card declined"
    assert "4242" not in str(error)


async def test_tokenize_transport_failure_is_remote_unavailable(protocol_client, remote):
    remote.vault_response = httpx.ConnectError("refused")

    with pytest.raises(RemoteUnavailable) as excinfo:
        await protocol_client.tokenize_payment_card(_card(), "shop.example")
    assert "4242" not in str(excinfo.value)
    assert excinfo.value.__cause__ is None


async def test_tokenize_requires_merchant(protocol_client, remote):
    with pytest.raises(InvalidRequest):
        await protocol_client.tokenize_payment_card(_card(), None)
    assert remote.requests == []


async def test_card_details_repr_hides_secrets():
    assert "4242" not in repr(_card())
