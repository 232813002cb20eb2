"""Authentication exceptions."""

from enum import StrEnum

from fastapi import HTTPException, status


class RejectionReason(StrEnum):
    """Why a credential or refresh attempt was rejected."""

    INVALID_SIGNATURE_OR_EXPIRY = "InvalidSignatureOrExpiry"
    TOKEN_REVOKED_OR_REUSED = "TokenRevokedOrReused"
    IDENTITY_NOT_FOUND = "IdentityNotFound"
    INVALID_CREDENTIALS = "InvalidCredentials"


class AuthenticationException(HTTPException):
    """Base authentication exception.

    When ``clear_cookies`` is set the response also expires both credential cookies.
    """

    def __init__(
        self,
        detail: str = "Authentication failed",
        reason: RejectionReason = RejectionReason.INVALID_SIGNATURE_OR_EXPIRY,
        clear_cookies: bool = False,
    ):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)
        self.reason = reason
        self.clear_cookies = clear_cookies


class InvalidCredentialsException(AuthenticationException):
    """Raised on any login failure.

    Unknown account, wrong password, lockout and inactivity look the same to the caller.
    """

    def __init__(self):
        super().__init__(detail="Invalid credentials", reason=RejectionReason.INVALID_CREDENTIALS)


class InvalidCredentialException(AuthenticationException):
    """Raised when a credential is missing, tampered, expired or of the wrong type."""

    def __init__(self, detail: str = "Invalid or expired credential", clear_cookies: bool = True):
        super().__init__(
            detail=detail,
            reason=RejectionReason.INVALID_SIGNATURE_OR_EXPIRY,
            clear_cookies=clear_cookies,
        )


class TokenRevokedOrReusedException(AuthenticationException):
    """Raised when a refresh token id is no longer registered.

    Covers expiry, logout and replay of a rotated id alike.
    """

    def __init__(self):
        super().__init__(
            detail="Refresh token revoked or reused",
            reason=RejectionReason.TOKEN_REVOKED_OR_REUSED,
            clear_cookies=True,
        )


class IdentityNotFoundException(AuthenticationException):
    """Raised when the identity named by a credential no longer exists."""

    def __init__(self):
        super().__init__(
            detail="Identity not found",
            reason=RejectionReason.IDENTITY_NOT_FOUND,
            clear_cookies=True,
        )


class UserInactiveException(HTTPException):
    """Raised when user account is inactive."""

    def __init__(self):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")


class RegistryUnavailableException(HTTPException):
    """Raised when session storage cannot be reached."""

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session storage unavailable, try again later",
        )
