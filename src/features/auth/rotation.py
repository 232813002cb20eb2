"""Refresh rotation engine.

One refresh attempt moves through Received -> Verified -> Matched -> Rotated,
or ends in Rejected. Every rejection is raised as an exception that clears
both credential cookies, and the old token id is unusable once Rotated.
"""

import logging
from dataclasses import dataclass
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from src.config.settings import Settings, settings
from src.features.user.models import User
from src.features.user.service import UserService

from .credentials import InvalidCredential, TokenPair, issue_pair, new_token_id, verify_refresh
from .exceptions import IdentityNotFoundException, InvalidCredentialException, TokenRevokedOrReusedException
from .registry import DeviceInfo, SessionRegistry, session_registry

logger = logging.getLogger(__name__)


class RotationState(StrEnum):
    """States of a single refresh attempt."""

    RECEIVED = "received"
    VERIFIED = "verified"
    MATCHED = "matched"
    ROTATED = "rotated"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class RotationOutcome:
    """Result of a successful rotation."""

    user: User
    tokens: TokenPair
    token_id: str
    state: RotationState = RotationState.ROTATED


class RotationEngine:
    """Validates a refresh credential and atomically swaps its session for a new one."""

    def __init__(self, registry: SessionRegistry = session_registry, config: Settings = settings) -> None:
        self.registry = registry
        self.config = config

    async def rotate(self, session: AsyncSession, refresh_token: str | None) -> RotationOutcome:
        """Rotate a refresh credential.

        Args:
            session: Database session
            refresh_token: Encoded refresh credential read from the cookie

        Returns:
            RotationOutcome with the new credential pair

        Raises:
            InvalidCredentialException: Bad signature, expired, or not a refresh credential
            IdentityNotFoundException: The identity no longer exists or is inactive
            TokenRevokedOrReusedException: The token id is not (or no longer) registered

        """
        state = RotationState.RECEIVED
        try:
            claims = verify_refresh(refresh_token, self.config)
        except InvalidCredential as err:
            self._log_rejection(state, None, f"refresh credential rejected: {err}", "refresh_token_invalid")
            raise InvalidCredentialException(detail="Invalid or expired refresh token") from err
        state = RotationState.VERIFIED

        async with self.registry.serialized(session, claims.identity):
            user = await UserService.get_by_public_id(session, claims.identity)
            if user is None or not user.is_active:
                self._log_rejection(state, claims.identity, "identity not found", "refresh_identity_missing")
                raise IdentityNotFoundException()

            current = await self.registry.find_by_token_id(session, user, claims.token_id)
            if current is None:
                self._log_security_event(state, claims.identity)
                raise TokenRevokedOrReusedException()
            state = RotationState.MATCHED

            token_id = new_token_id()
            replaced = await self.registry.replace(session, user, claims.token_id, token_id, DeviceInfo.of(current))
            if replaced is None:
                self._log_security_event(state, claims.identity)
                raise TokenRevokedOrReusedException()

        tokens = issue_pair(user.public_id, user.company.public_id, user.role, token_id, self.config)
        logger.info(f"Refresh token rotated for user {user.public_id}")
        return RotationOutcome(user=user, tokens=tokens, token_id=token_id)

    def _log_rejection(self, state: RotationState, identity: str | None, message: str, event: str) -> None:
        logger.info(
            f"Rotation {RotationState.REJECTED} after {state}: {message}",
            extra={"event": event, "identity": identity},
        )

    def _log_security_event(self, state: RotationState, identity: str) -> None:
        logger.warning(
            f"Rotation {RotationState.REJECTED} after {state}: refresh token id revoked or reused",
            extra={"event": "refresh_token_reuse_or_revoked", "identity": identity},
        )


rotation_engine = RotationEngine()
