"""Tests for the auth client, end to end against the app and against a mock transport."""

import asyncio

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.client.auth_client import AuthClient
from src.client.exceptions import AuthClientError
from src.client.session_state import AuthStatus
from src.main import app

PASSWORD = "TestPass123"


@pytest_asyncio.fixture
async def auth_client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield AuthClient(client)


class TestAgainstApp:
    async def test_register_populates_state(self, auth_client):
        data = await auth_client.register("Acme", "owner@acme.com", PASSWORD, name="Owner")

        assert auth_client.state.is_authenticated
        assert auth_client.state.identity == data["identity"]
        assert auth_client.state.tenant == data["tenant"]

    async def test_login_and_current_identity(self, auth_client, make_user):
        user = await make_user(email="client@example.com")

        await auth_client.login("client@example.com", PASSWORD)
        identity = await auth_client.current_identity()

        assert identity["identity"] == user.public_id
        assert auth_client.state.identity == user.public_id

    async def test_failed_login_raises_and_keeps_state_empty(self, auth_client, make_user):
        await make_user(email="client@example.com")

        with pytest.raises(AuthClientError) as exc_info:
            await auth_client.login("client@example.com", "WrongPass1")

        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == "Invalid credentials"
        assert auth_client.state.status is AuthStatus.EMPTY

    async def test_expired_access_cookie_is_refreshed_transparently(self, auth_client, make_user):
        await make_user(email="client@example.com")
        await auth_client.login("client@example.com", PASSWORD)
        old_refresh = auth_client.client.cookies.get("refresh_token")

        auth_client.client.cookies.delete("access_token")
        identity = await auth_client.current_identity()

        assert identity["identity"] == auth_client.state.identity
        assert auth_client.client.cookies.get("refresh_token") != old_refresh

    async def test_list_sessions(self, auth_client, make_user):
        await make_user(email="client@example.com")
        await auth_client.login("client@example.com", PASSWORD)

        sessions = await auth_client.list_sessions()
        assert len(sessions) == 1
        assert sessions[0]["device_info"]["user_agent"].startswith("python-httpx")

    async def test_logout_clears_state_and_cookies(self, auth_client, make_user):
        await make_user(email="client@example.com")
        await auth_client.login("client@example.com", PASSWORD)

        await auth_client.logout()

        assert auth_client.state.status is AuthStatus.CLEARED
        assert auth_client.client.cookies.get("access_token") is None
        assert auth_client.client.cookies.get("refresh_token") is None

    async def test_check_auth(self, auth_client, make_user):
        await make_user(email="client@example.com")
        await auth_client.login("client@example.com", PASSWORD)

        assert await auth_client.check_auth() is True

        await auth_client.logout()
        assert await auth_client.check_auth() is False
        assert not auth_client.state.is_authenticated

    async def test_refresh_without_session_clears_state(self, auth_client):
        auth_client.state.populate("someone", "somewhere")

        with pytest.raises(AuthClientError) as exc_info:
            await auth_client.refresh()

        assert exc_info.value.status_code == 401
        assert auth_client.state.status is AuthStatus.CLEARED


class TestCheckAuth:
    async def test_concurrent_checks_share_one_request(self):
        calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.02)
            return httpx.Response(200, json={"identity": "user-1", "tenant": "tenant-1", "role": "viewer"})

        async with AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as client:
            auth_client = AuthClient(client)
            results = await asyncio.gather(*(auth_client.check_auth() for _ in range(5)))

        assert results == [True] * 5
        assert calls == 1
        assert auth_client.state.identity == "user-1"

    async def test_slow_check_times_out(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={"identity": "user-1", "tenant": "tenant-1", "role": "viewer"})

        async with AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as client:
            auth_client = AuthClient(client, check_timeout=0.05)
            auth_client.state.populate("user-1", "tenant-1")

            assert await auth_client.check_auth() is False

        assert auth_client.state.status is AuthStatus.CLEARED
