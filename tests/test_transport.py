"""Tests for the bearer token transport (no network calls)."""
import asyncio
import httpx
import pytest
import respx
from ci_migrator.core.errors import AuthenticationError, RemoteStatusError, TransportError
from ci_migrator.core.transport import BearerAuthTransport, successful

BASE = "http://localhost:80"


def _transport() -> BearerAuthTransport:
    return BearerAuthTransport(BASE + "/", "test-clientID", "test-clientSecret")


def test_server_url_trailing_slash_is_trimmed():
    t = _transport()
    assert t.server_url == BASE
    assert t.url("/api/migrations") == BASE + "/api/migrations"


@pytest.mark.asyncio
async def test_token_is_fetched_once_and_attached():
    t = _transport()
    with respx.mock(base_url=BASE) as router:
        login = router.post("/api/auth/client/login").mock(
            return_value=httpx.Response(200, json={"token": "tok"})
        )
        api = router.get("/api/migrations").mock(return_value=httpx.Response(200, json=[]))

        await t.get("/api/migrations")
        await t.get("/api/migrations")

    assert login.call_count == 1
    assert api.call_count == 2
    sent = api.calls.last.request
    assert sent.headers["Authorization"] == "Bearer tok"
    assert sent.headers["Content-Type"] == "application/json"
    assert login.calls.last.request.content
    assert b"test-clientSecret" in login.calls.last.request.content


@pytest.mark.asyncio
async def test_expired_token_is_renewed():
    t = _transport()
    with respx.mock(base_url=BASE) as router:
        login = router.post("/api/auth/client/login").mock(side_effect=[
            httpx.Response(200, json={"token": "tok-1"}),
            httpx.Response(200, json={"token": "tok-2"}),
        ])
        api = router.get("/api/migrations").mock(return_value=httpx.Response(200, json=[]))

        await t.get("/api/migrations")
        t._expires_at = 0.0
        await t.get("/api/migrations")

    assert login.call_count == 2
    assert api.calls.last.request.headers["Authorization"] == "Bearer tok-2"


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_refresh():
    t = _transport()
    with respx.mock(base_url=BASE) as router:
        login = router.post("/api/auth/client/login").mock(
            return_value=httpx.Response(200, json={"token": "tok"})
        )
        router.get("/api/migrations").mock(return_value=httpx.Response(200, json=[]))

        await asyncio.gather(*(t.get("/api/migrations") for _ in range(5)))

    assert login.call_count == 1


@pytest.mark.asyncio
async def test_authentication_failure_is_retried_on_next_request():
    t = _transport()
    with respx.mock(base_url=BASE) as router:
        login = router.post("/api/auth/client/login").mock(side_effect=[
            httpx.Response(401, text="invalid credentials"),
            httpx.Response(200, json={"token": "tok"}),
        ])
        api = router.get("/api/migrations").mock(return_value=httpx.Response(200, json=[]))

        with pytest.raises(AuthenticationError) as exc:
            await t.get("/api/migrations")
        assert "401" in str(exc.value)
        assert "invalid credentials" in str(exc.value)
        assert api.call_count == 0

        await t.get("/api/migrations")

    assert login.call_count == 2
    assert api.call_count == 1


@pytest.mark.asyncio
async def test_authentication_without_token_in_body():
    t = _transport()
    with respx.mock(base_url=BASE) as router:
        router.post("/api/auth/client/login").mock(return_value=httpx.Response(200, text="ok"))
        with pytest.raises(AuthenticationError):
            await t.authenticate()


@pytest.mark.asyncio
async def test_network_failure_is_transport_error():
    t = _transport()
    with respx.mock(base_url=BASE) as router:
        router.post("/api/auth/client/login").mock(return_value=httpx.Response(200, json={"token": "tok"}))
        router.get("/api/migrations").mock(side_effect=httpx.ConnectError("connection refused"))
        with pytest.raises(TransportError) as exc:
            await t.get("/api/migrations")
    assert "connection refused" in str(exc.value)


def test_successful_accepts_2xx_only():
    assert successful(httpx.Response(204)) == b""
    assert successful(httpx.Response(299, text="fine")) == b"fine"
    with pytest.raises(RemoteStatusError) as exc:
        successful(httpx.Response(300, text="redirect"))
    assert exc.value.status_code == 300


def test_non_2xx_error_carries_status_and_body():
    with pytest.raises(RemoteStatusError) as exc:
        successful(httpx.Response(404, text="migration not found"), operation="getMigrationByID api")
    err = exc.value
    assert err.status_code == 404
    assert err.body == "migration not found"
    assert str(err) == "getMigrationByID api: response with status: 404 Not Found, body: migration not found"
