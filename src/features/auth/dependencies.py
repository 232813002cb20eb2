"""Authentication dependencies for FastAPI."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.dependencies import get_db_session
from src.features.user.models import User
from src.features.user.service import UserService

from .credentials import AccessClaims, InvalidCredential, verify_access
from .exceptions import IdentityNotFoundException, InvalidCredentialException, UserInactiveException
from .registry import DeviceInfo
from .transport import cookie_transport


async def get_current_claims(request: Request) -> AccessClaims:
    """Get the caller's identity claim from the access cookie alone.

    No storage is consulted. A missing or invalid access cookie does not
    clear cookies: the refresh cookie may still be good and the client
    decides whether to refresh.

    Raises:
        InvalidCredentialException: If the cookie is absent, invalid or expired

    """
    try:
        return verify_access(cookie_transport.read_access(request))
    except InvalidCredential as err:
        raise InvalidCredentialException(detail=str(err), clear_cookies=False) from err


async def get_current_user(
    claims: AccessClaims = Depends(get_current_claims),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """Load the user named by the access cookie.

    Raises:
        IdentityNotFoundException: If the user no longer exists
        UserInactiveException: If the account is inactive

    """
    user = await UserService.get_by_public_id(session, claims.identity)

    if user is None:
        raise IdentityNotFoundException()

    if not user.is_active:
        raise UserInactiveException()

    return user


def get_device_info(request: Request) -> DeviceInfo:
    """Device metadata for a new session."""
    return DeviceInfo(
        user_agent=request.headers.get("user-agent") or "unknown",
        ip_address=request.client.host if request.client else "unknown",
    )
