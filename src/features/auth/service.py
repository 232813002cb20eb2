"""Authentication service layer."""

import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.config.settings import settings
from src.database.base import utcnow
from src.features.user.models import User, UserStatus
from src.features.user.service import UserService

from .credentials import InvalidCredential, TokenPair, issue_pair, new_token_id, verify_refresh
from .models import RefreshSession
from .registry import DeviceInfo, session_registry

logger = logging.getLogger(__name__)


class AuthService:
    """Service for login, session issuance, logout and session listing."""

    @staticmethod
    async def authenticate_user(session: AsyncSession, email: str, password: str) -> User | None:
        """Authenticate a user by email and password.

        Every failure returns None so callers cannot tell an unknown account
        from a wrong password, a lockout or an inactive account.

        Args:
            session: Database session
            email: Login email
            password: Plain text password

        Returns:
            User object if authentication successful, None otherwise

        """
        user = await UserService.get_by_email(session, email)

        if not user:
            return None

        if not user.is_active:
            logger.warning(f"Login attempt for inactive account: {user.public_id}")
            return None

        if user.is_locked():
            logger.warning(f"Login attempt for locked account: {user.public_id}")
            return None

        if not user.verify_password(password):
            user.failed_login_attempts += 1

            if user.failed_login_attempts >= settings.max_failed_login_attempts:
                user.locked_until = utcnow() + timedelta(minutes=settings.lockout_minutes)
                user.status = UserStatus.LOCKED.value
                logger.warning(
                    f"Account locked due to failed attempts: {user.public_id}",
                    extra={"event": "account_locked", "identity": user.public_id},
                )

            return None

        user.failed_login_attempts = 0
        user.last_login_at = utcnow()
        user.locked_until = None
        user.status = UserStatus.ACTIVE.value

        return user

    @staticmethod
    async def start_session(session: AsyncSession, user: User, device_info: DeviceInfo) -> TokenPair:
        """Register a new refresh session and issue its credential pair.

        The session row is written before the credentials exist, so a
        refresh credential is never handed out without server-side state.
        """
        token_id = new_token_id()
        await session_registry.add(session, user, token_id, device_info)
        return issue_pair(user.public_id, user.company.public_id, user.role, token_id)

    @staticmethod
    async def logout(session: AsyncSession, user: User, refresh_token: str | None) -> None:
        """Remove the caller's session.

        With a valid refresh credential only its session goes; without one,
        every session of the user is removed. A refresh credential that does
        not verify, or belongs to someone else, removes nothing.
        """
        if refresh_token is None:
            await session_registry.revoke_all(session, user)
            logger.info(f"User logged out of all sessions: {user.public_id}")
            return

        try:
            claims = verify_refresh(refresh_token)
        except InvalidCredential:
            logger.info(f"Logout with unusable refresh token: {user.public_id}")
            return

        if claims.identity == user.public_id:
            await session_registry.revoke(session, user, claims.token_id)
        logger.info(f"User logged out: {user.public_id}")

    @staticmethod
    async def list_sessions(session: AsyncSession, user: User) -> list[RefreshSession]:
        """Live sessions of the caller, oldest first."""
        return await session_registry.list_sessions(session, user)
