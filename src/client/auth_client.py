"""Client for the auth API, built on a shared httpx client and request gate."""

import asyncio
import logging
from typing import Any

import httpx

from .exceptions import AuthClientError, RefreshFailedError
from .gate import RequestGate
from .session_state import ClientSessionState

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    detail = body.get("detail") if isinstance(body, dict) else None
    return str(detail) if detail else response.reason_phrase


class AuthClient:
    """Register, login, refresh, logout and identity checks against the auth API.

    Credentials travel only as cookies in ``client``'s jar. ``state`` records
    who the client is signed in as and is cleared on logout or failed refresh.
    Every non-auth call should go through ``gate`` so expired access cookies
    are refreshed transparently.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        state: ClientSessionState | None = None,
        *,
        api_prefix: str = "/api",
        check_timeout: float = 10.0,
        refresh_timeout: float | None = None,
    ) -> None:
        self.client = client
        self.state = state or ClientSessionState()
        self.api_prefix = api_prefix.rstrip("/")
        self.check_timeout = check_timeout
        self.gate = RequestGate(
            client,
            self.state,
            self.refresh,
            excluded_paths=(self._path("/auth/login"), self._path("/auth/register"), self._path("/auth/refresh")),
            refresh_timeout=refresh_timeout,
        )
        self._check_task: asyncio.Task[bool] | None = None

    def _path(self, path: str) -> str:
        return f"{self.api_prefix}{path}"

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        if response.is_error:
            raise AuthClientError(_error_detail(response), response.status_code)

    async def register(self, company_name: str, email: str, password: str, name: str | None = None) -> dict[str, Any]:
        """Register a company and sign in as its admin."""
        payload: dict[str, Any] = {"company_name": company_name, "email": email, "password": password}
        if name:
            payload["name"] = name
        response = await self.client.post(self._path("/auth/register"), json=payload)
        self._raise_for_error(response)

        data = response.json()
        self.state.populate(data["identity"], data["tenant"])
        return data

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Sign in; the server sets the cookie pair."""
        response = await self.client.post(self._path("/auth/login"), json={"email": email, "password": password})
        self._raise_for_error(response)

        data = response.json()
        self.state.populate(data["identity"], data["tenant"])
        logger.info(f"Signed in as {data['identity']}")
        return data

    async def refresh(self) -> None:
        """Rotate the cookie pair.

        Raises:
            AuthClientError: If the server rejects the refresh; the state is cleared

        """
        try:
            response = await self.client.post(self._path("/auth/refresh"))
            self._raise_for_error(response)
        except (AuthClientError, httpx.HTTPError):
            self.state.clear()
            raise

    async def logout(self) -> None:
        """Sign out; local state is cleared even if the server call fails."""
        try:
            response = await self.gate.request("POST", self._path("/auth/logout"))
            if response.is_error:
                logger.info(f"Logout answered {response.status_code}")
        except (RefreshFailedError, httpx.HTTPError) as exc:
            logger.info(f"Logout request failed: {exc!r}")
        finally:
            self.state.clear()

    async def current_identity(self) -> dict[str, Any]:
        """Fetch the caller's identity, refreshing once if the access cookie expired."""
        response = await self.gate.request("GET", self._path("/auth/me"))
        self._raise_for_error(response)

        data = response.json()
        self.state.populate(data["identity"], data["tenant"])
        return data

    async def list_sessions(self) -> list[dict[str, Any]]:
        response = await self.gate.request("GET", self._path("/auth/sessions"))
        self._raise_for_error(response)
        return response.json()["sessions"]

    async def check_auth(self) -> bool:
        """Confirm the session is still valid.

        Concurrent callers share one in-flight check. Any failure, including
        a check exceeding ``check_timeout``, clears the state and returns False.
        """
        if self._check_task is None:
            self._check_task = asyncio.ensure_future(self._check_auth())
            self._check_task.add_done_callback(self._forget_check)
        return await asyncio.shield(self._check_task)

    def _forget_check(self, task: asyncio.Task[bool]) -> None:
        if self._check_task is task:
            self._check_task = None

    async def _check_auth(self) -> bool:
        try:
            async with asyncio.timeout(self.check_timeout):
                await self.current_identity()
            return True
        except (AuthClientError, httpx.HTTPError, TimeoutError) as exc:
            logger.info(f"Auth check failed: {exc!r}")
            self.state.clear()
            return False
