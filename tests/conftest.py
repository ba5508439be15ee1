import json

import httpx
import pytest

from gift_checkout.builder import CheckoutRequestBuilder
from gift_checkout.client import CARD_VAULT_URL, CheckoutProtocolClient
from gift_checkout.embedded import EmbeddedCheckoutUrlBuilder
from gift_checkout.models import Recipient
from gift_checkout.service import GiftCheckoutService
from gift_checkout.tokens import CATALOG_AUTH_URL, TokenManager
from services.gifting.store import InMemoryGroupStore


PROFILE_URL = "https://gifts.example/profiles/gift-agent.json"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeRemote:
    """
    Routes requests for the token endpoint, the card vault and merchant MCP
    endpoints to canned handlers, recording every request it sees.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_counter = 0
        self.token_response = None
        self.mcp_response = httpx.Response(
            200,
            json={
                "jsonrpc": "2.0",
                "id": 1,
                "result": {
                    "content": [
                        {
                            "type": "text",
                            "text": json.dumps(
                                {
                                    "id": "chk_1",
                                    "status": "requires_escalation",
                                    "continue_url": "https://shop.example/checkout/1",
                                    "messages": [],
                                }
                            ),
                        }
                    ]
                },
            },
        )
        self.vault_response = httpx.Response(200, json={"id": "sess_abc"})

    def _token(self) -> httpx.Response:
        if self.token_response is not None:
            return self.token_response
        self.token_counter += 1
        return httpx.Response(200, json={"access_token": f"tok_{self.token_counter}", "expires_in": 3600})

    def handler(self, request: httpx.Request):
        self.requests.append(request)
        url = str(request.url)
        if isinstance(self.mcp_response, Exception) and url.endswith("/api/ucp/mcp"):
            raise self.mcp_response
        if isinstance(self.vault_response, Exception) and url == CARD_VAULT_URL:
            raise self.vault_response
        if url == CATALOG_AUTH_URL:
            return self._token()
        if url == CARD_VAULT_URL:
            return self.vault_response
        if url.endswith("/api/ucp/mcp"):
            return self.mcp_response
        return httpx.Response(404, json={"error": "not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).endswith(suffix)]

    def bodies_to(self, suffix: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests_to(suffix)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def token_manager(remote, clock):
    return TokenManager("client-id", "client-secret", clock=clock, transport=remote.transport())


@pytest.fixture
def builder():
    return CheckoutRequestBuilder(profile_url=PROFILE_URL)


@pytest.fixture
def protocol_client(token_manager, remote):
    return CheckoutProtocolClient(token_manager, timeout=5, transport=remote.transport())


@pytest.fixture
def group_store():
    return InMemoryGroupStore()


@pytest.fixture
def checkout_service(group_store, builder, protocol_client, token_manager):
    return GiftCheckoutService(
        groups=group_store,
        builder=builder,
        client=protocol_client,
        embedded=EmbeddedCheckoutUrlBuilder(token_manager),
    )


@pytest.fixture
def gift_group(group_store):
    group = group_store.create_group("A", "B", "a@x.com")
    group_store.set_recipient(
        group.id,
        Recipient(
            first_name="Rita",
            last_name="Recipient",
            phone="555-0100",
            address1="1 Main St",
            city="Springfield",
            state="IL",
            postal_code="62701",
            country="United States",
        ),
    )
    return group_store.get_group(group.id)
