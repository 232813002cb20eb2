"""Single-flight request gate for cookie-authenticated httpx clients.

When a request comes back 401 the gate refreshes the session once, no matter
how many requests fail at the same time. Requests that fail while a refresh is
running are parked as ``PendingRequest`` continuations and released together
when it finishes: replayed on success, rejected on failure. Each request is
replayed at most once.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

import httpx

from .exceptions import RefreshFailedError
from .session_state import ClientSessionState

logger = logging.getLogger(__name__)

# Request extension marking a replay; replays are never retried again
RETRY_EXTENSION = "auth_retry"

DEFAULT_EXCLUDED_PATHS = ("/auth/login", "/auth/register", "/auth/refresh")


@dataclass(eq=False)
class PendingRequest:
    """A request parked until the in-flight refresh settles."""

    request: httpx.Request
    future: asyncio.Future


class RequestGate:
    """Sends requests and coordinates a single refresh on credential rejection.

    Args:
        client: Client whose cookie jar holds the credentials
        state: Session state cleared when a refresh fails
        refresh: Coroutine function performing the refresh call; raises on failure
        excluded_paths: Path suffixes never retried (login, register, refresh)
        refresh_timeout: Upper bound for the refresh in seconds; defaults to the client's read timeout
        unauthorized_status: Status code signalling a rejected credential

    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        state: ClientSessionState,
        refresh: Callable[[], Awaitable[Any]],
        *,
        excluded_paths: Iterable[str] = DEFAULT_EXCLUDED_PATHS,
        refresh_timeout: float | None = None,
        unauthorized_status: int = 401,
    ) -> None:
        self._client = client
        self._state = state
        self._refresh = refresh
        self._excluded_paths = tuple(excluded_paths)
        self._refresh_timeout = refresh_timeout if refresh_timeout is not None else client.timeout.read
        self._unauthorized_status = unauthorized_status
        self._refreshing = False
        self._queue: list[PendingRequest] = []

    @property
    def refresh_in_flight(self) -> bool:
        return self._refreshing

    @property
    def queued(self) -> int:
        return len(self._queue)

    async def request(self, method: str, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        """Build a request on the underlying client and send it through the gate."""
        return await self.send(self._client.build_request(method, url, **kwargs))

    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send ``request``; on 401 refresh once and replay it.

        Raises:
            RefreshFailedError: If the refresh this request depended on failed

        """
        # buffer streamed bodies so the request can be replayed
        await request.aread()
        response = await self._client.send(request)
        if response.status_code != self._unauthorized_status or not self._is_retryable(request):
            return response

        await response.aclose()
        if self._refreshing:
            await self._wait_for_refresh(request)
        else:
            await self._run_refresh()

        logger.debug(f"Replaying {request.method} {request.url.path} after refresh")
        return await self._client.send(self._rebuild_for_retry(request))

    def _is_retryable(self, request: httpx.Request) -> bool:
        if request.extensions.get(RETRY_EXTENSION):
            return False
        path = request.url.path
        return not any(path.endswith(excluded) for excluded in self._excluded_paths)

    async def _wait_for_refresh(self, request: httpx.Request) -> None:
        pending = PendingRequest(request=request, future=asyncio.get_running_loop().create_future())
        self._queue.append(pending)
        try:
            await pending.future
        except asyncio.CancelledError:
            # drop only this continuation
            if pending in self._queue:
                self._queue.remove(pending)
            raise

    async def _run_refresh(self) -> None:
        self._refreshing = True
        try:
            if self._refresh_timeout is None:
                await self._refresh()
            else:
                await asyncio.wait_for(self._refresh(), timeout=self._refresh_timeout)
        except asyncio.CancelledError:
            self._refreshing = False
            self._release(RefreshFailedError("Session refresh cancelled"))
            raise
        except Exception as exc:
            self._refreshing = False
            error = RefreshFailedError("Session refresh failed", getattr(exc, "status_code", None))
            self._release(error, cause=exc)
            self._state.clear()
            logger.info(f"Session refresh failed: {exc!r}")
            raise error from exc

        self._refreshing = False
        self._release(None)

    def _release(self, error: RefreshFailedError | None, cause: BaseException | None = None) -> None:
        queue, self._queue = self._queue, []
        for pending in queue:
            if pending.future.done():
                continue
            if error is None:
                pending.future.set_result(None)
            else:
                waiter_error = RefreshFailedError(str(error), error.status_code)
                waiter_error.__cause__ = cause
                pending.future.set_exception(waiter_error)

    def _rebuild_for_retry(self, request: httpx.Request) -> httpx.Request:
        """Copy ``request`` with the cookie jar's current credentials."""
        headers = httpx.Headers(request.headers)
        for name in ("cookie", "content-length", "transfer-encoding"):
            headers.pop(name, None)
        retry = httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=request.content,
            extensions={**request.extensions, RETRY_EXTENSION: True},
        )
        self._client.cookies.set_cookie_header(retry)
        return retry
