import asyncio

import httpx
import pytest

from gift_checkout.errors import AuthError, RemoteUnavailable
from gift_checkout.tokens import CATALOG_AUTH_URL, TokenManager, create_token_manager


pytestmark = pytest.mark.asyncio


async def test_returns_none_without_credentials(remote, clock):
    manager = TokenManager("", "", clock=clock, transport=remote.transport())

    assert await manager.get_token() is None
    assert remote.requests == []


async def test_exchange_sends_client_credentials(token_manager, remote):
    token = await token_manager.get_token()

    assert token == "tok_1"
    body = remote.bodies_to("/auth/access_token")[0]
    assert body == {
        "client_id": "client-id",
        "client_secret": "client-secret",
        "grant_type": "client_credentials",
    }


async def test_expiry_is_absolute_from_response_time(token_manager, clock):
    await token_manager.get_token()

    assert token_manager.state.expires_at == clock.now + 3600


async def test_cached_token_with_120s_left_is_reused(token_manager, remote, clock):
    await token_manager.get_token()
    clock.now += 3600 - 120

    assert await token_manager.get_token() == "tok_1"
    assert len(remote.requests) == 1


async def test_token_inside_60s_margin_is_refreshed(token_manager, remote, clock):
    await token_manager.get_token()
    clock.now += 3600 - 30

    assert await token_manager.get_token() == "tok_2"
    assert len(remote.requests) == 2


async def test_concurrent_callers_share_one_refresh(clock):
    calls = []

    async def handler(request):
        calls.append(request)
        await asyncio.sleep(0.01)
        return httpx.Response(200, json={"access_token": "shared", "expires_in": 3600})

    manager = TokenManager("id", "secret", clock=clock, transport=httpx.MockTransport(handler))
    tokens = await asyncio.gather(*(manager.get_token() for _ in range(10)))

    assert tokens == ["shared"] * 10
    assert len(calls) == 1


async def test_concurrent_callers_share_one_failure(clock):
    calls = []

    async def handler(request):
        calls.append(request)
        await asyncio.sleep(0.01)
        return httpx.Response(401, json={"error": "invalid_client"})

    manager = TokenManager("id", "secret", clock=clock, transport=httpx.MockTransport(handler))
    results = await asyncio.gather(*(manager.get_token() for _ in range(5)), return_exceptions=True)

    assert len(calls) == 1
    assert all(isinstance(r, AuthError) for r in results)
    assert manager.state is None


async def test_rejected_exchange_raises_auth_error(token_manager, remote):
    remote.token_response = httpx.Response(403, json={"error": "forbidden"})

    with pytest.raises(AuthError) as excinfo:
        await token_manager.get_token()
    assert excinfo.value.status_code == 403


async def test_missing_access_token_raises_auth_error(token_manager, remote):
    remote.token_response = httpx.Response(200, json={"expires_in": 3600})

    with pytest.raises(AuthError, match="token endpoint returned no access_token"):
        await token_manager.get_token()


async def test_missing_expires_in_defaults_to_an_hour(token_manager, remote, clock):
    remote.token_response = httpx.Response(200, json={"access_token": "tok"})

    await token_manager.get_token()

    assert token_manager.state.expires_at == clock.now + 3600


async def test_failed_refresh_keeps_nothing_and_next_call_retries(token_manager, remote):
    remote.token_response = httpx.Response(500, text="oops")
    with pytest.raises(AuthError):
        await token_manager.get_token()

    remote.token_response = None
    assert await token_manager.get_token() == "tok_1"


async def test_unreachable_endpoint_is_remote_unavailable(clock):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    manager = TokenManager("id", "secret", clock=clock, transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteUnavailable):
        await manager.get_token()


async def test_timeout_is_remote_unavailable(clock):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    manager = TokenManager("id", "secret", clock=clock, transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteUnavailable):
        await manager.get_token()


async def test_factory_reads_environment(monkeypatch):
    monkeypatch.setenv("SHOPIFY_CATALOG_CLIENT_ID", "env-id")
    monkeypatch.setenv("SHOPIFY_CATALOG_CLIENT_SECRET", "env-secret")

    manager = create_token_manager()

    assert manager.configured
    assert manager.client_id == "env-id"
    assert manager.auth_url == CATALOG_AUTH_URL
