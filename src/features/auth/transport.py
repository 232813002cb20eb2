"""Cookie transport for access and refresh credentials.

Cookie attributes are fixed here and cannot be overridden by callers:
HttpOnly, SameSite=Strict, Path=/, Secure in production, and a Max-Age equal
to the lifetime of the credential the cookie carries.
"""

from fastapi import Request, Response

from src.config.settings import Settings, settings

COOKIE_PATH = "/"
COOKIE_SAMESITE = "strict"


class CookieTransport:
    """Binds a credential pair to response cookies and reads it back from requests."""

    def __init__(self, config: Settings = settings) -> None:
        self.config = config

    @property
    def access_max_age(self) -> int:
        return self.config.access_token_expire_minutes * 60

    @property
    def refresh_max_age(self) -> int:
        return self.config.refresh_token_expire_days * 24 * 60 * 60

    def _set(self, response: Response, key: str, value: str, max_age: int) -> None:
        response.set_cookie(
            key=key,
            value=value,
            max_age=max_age,
            path=COOKIE_PATH,
            secure=self.config.cookie_secure,
            httponly=True,
            samesite=COOKIE_SAMESITE,
        )

    def _delete(self, response: Response, key: str) -> None:
        response.delete_cookie(
            key=key,
            path=COOKIE_PATH,
            secure=self.config.cookie_secure,
            httponly=True,
            samesite=COOKIE_SAMESITE,
        )

    def set_pair(self, response: Response, access: str, refresh: str) -> None:
        """Set both credential cookies together."""
        self._set(response, self.config.access_cookie_name, access, self.access_max_age)
        self._set(response, self.config.refresh_cookie_name, refresh, self.refresh_max_age)

    def clear(self, response: Response) -> None:
        """Expire both credential cookies together."""
        self._delete(response, self.config.access_cookie_name)
        self._delete(response, self.config.refresh_cookie_name)

    def read_access(self, request: Request) -> str | None:
        return request.cookies.get(self.config.access_cookie_name)

    def read_refresh(self, request: Request) -> str | None:
        return request.cookies.get(self.config.refresh_cookie_name)


cookie_transport = CookieTransport()
