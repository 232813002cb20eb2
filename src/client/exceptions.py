"""Client-side authentication errors."""


class AuthClientError(Exception):
    """Raised when the auth API answers with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RefreshFailedError(AuthClientError):
    """Raised to every request waiting on a refresh that did not succeed."""

    pass
