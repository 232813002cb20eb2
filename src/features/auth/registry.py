"""Session registry: per-identity bookkeeping of refresh sessions.

Every mutation for one identity runs under that identity's lock. Locks are
per identity, so unrelated users never contend. Within one process an
``asyncio.Lock`` serializes coroutines; across processes the owning user row
is locked ``FOR UPDATE`` (a no-op on SQLite). ``replace`` is additionally a
compare-and-delete on the old token id, so a rotated id can only be consumed
once even if two writers slip past the locks.
"""

import asyncio
import logging
import weakref
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config.settings import Settings, settings
from src.database.base import utcnow
from src.features.user.models import User

from .exceptions import RegistryUnavailableException
from .models import RefreshSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    """Device metadata recorded with a refresh session."""

    user_agent: str = "unknown"
    ip_address: str = "unknown"

    @classmethod
    def of(cls, refresh_session: RefreshSession) -> "DeviceInfo":
        return cls(user_agent=refresh_session.user_agent, ip_address=refresh_session.ip_address)


class _IdentityLock:
    """asyncio lock that the owning task may re-enter."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None
        self._depth = 0

    async def acquire(self) -> bool:
        """Acquire the lock; return True on the outermost acquisition."""
        task = asyncio.current_task()
        if self._owner is task:
            self._depth += 1
            return False
        await self._lock.acquire()
        self._owner = task
        self._depth = 1
        return True

    def release(self) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._owner = None
            self._lock.release()


class IdentityLocks:
    """One lock per identity, dropped once nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, _IdentityLock] = weakref.WeakValueDictionary()

    def get(self, identity: str) -> _IdentityLock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = _IdentityLock()
            self._locks[identity] = lock
        return lock


@asynccontextmanager
async def _storage_guard() -> AsyncGenerator[None]:
    """Surface unreachable storage as a transient failure."""
    try:
        yield
    except (OperationalError, InterfaceError) as err:
        logger.error(f"Session registry unavailable: {err}")
        raise RegistryUnavailableException() from err
    except DBAPIError as err:
        if err.connection_invalidated:
            logger.error(f"Session registry connection lost: {err}")
            raise RegistryUnavailableException() from err
        raise


class SessionRegistry:
    """Durable store of refresh sessions, capped per identity with FIFO eviction."""

    def __init__(self, config: Settings = settings, locks: IdentityLocks | None = None) -> None:
        self.config = config
        self.locks = locks or IdentityLocks()

    @property
    def session_lifetime(self) -> timedelta:
        return timedelta(days=self.config.refresh_token_expire_days)

    @asynccontextmanager
    async def serialized(self, session: AsyncSession, identity: str) -> AsyncGenerator[None]:
        """Hold the identity's lock for a composite operation.

        Re-entrant for the holding task, so registry methods called inside
        the block do not deadlock.
        """
        lock = self.locks.get(identity)
        outermost = await lock.acquire()
        try:
            if outermost:
                async with _storage_guard():
                    await session.execute(select(User.id).where(User.public_id == identity).with_for_update())
            yield
        finally:
            lock.release()

    async def add(self, session: AsyncSession, user: User, token_id: str, device_info: DeviceInfo) -> RefreshSession:
        """Record a new session and evict the oldest ones beyond the cap.

        Args:
            session: Database session
            user: Owner of the session
            token_id: Opaque id embedded in the refresh credential
            device_info: User agent and network origin of the client

        Returns:
            The stored RefreshSession

        """
        async with self.serialized(session, user.public_id), _storage_guard():
            now = utcnow()
            refresh_session = RefreshSession(
                user_id=user.id,
                token_id=token_id,
                user_agent=device_info.user_agent,
                ip_address=device_info.ip_address,
                last_used_at=now,
                created_at=now,
                expires_at=now + self.session_lifetime,
            )
            session.add(refresh_session)
            await session.flush()
            await self._evict_overflow(session, user)
            return refresh_session

    async def find_by_token_id(self, session: AsyncSession, user: User, token_id: str) -> RefreshSession | None:
        """Return the live session holding ``token_id``, if any."""
        async with self.serialized(session, user.public_id), _storage_guard():
            await self.prune_expired(session, user)
            stmt = select(RefreshSession).where(RefreshSession.user_id == user.id, RefreshSession.token_id == token_id)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def replace(
        self,
        session: AsyncSession,
        user: User,
        old_token_id: str,
        new_token_id: str,
        device_info: DeviceInfo,
    ) -> RefreshSession | None:
        """Swap ``old_token_id`` for ``new_token_id``.

        The old row is removed with a compare-and-delete; when it is already
        gone nothing is inserted and None is returned.

        Returns:
            The new RefreshSession, or None if ``old_token_id`` was not present

        """
        async with self.serialized(session, user.public_id), _storage_guard():
            stmt = delete(RefreshSession).where(
                RefreshSession.user_id == user.id,
                RefreshSession.token_id == old_token_id,
            )
            result = await session.execute(stmt)
            if result.rowcount != 1:
                return None

            now = utcnow()
            refresh_session = RefreshSession(
                user_id=user.id,
                token_id=new_token_id,
                user_agent=device_info.user_agent,
                ip_address=device_info.ip_address,
                last_used_at=now,
                created_at=now,
                expires_at=now + self.session_lifetime,
            )
            session.add(refresh_session)
            await session.flush()
            return refresh_session

    async def revoke(self, session: AsyncSession, user: User, token_id: str) -> None:
        """Remove the session holding ``token_id``; absent ids are ignored."""
        async with self.serialized(session, user.public_id), _storage_guard():
            stmt = delete(RefreshSession).where(RefreshSession.user_id == user.id, RefreshSession.token_id == token_id)
            await session.execute(stmt)

    async def revoke_all(self, session: AsyncSession, user: User) -> None:
        """Remove every session of ``user``."""
        async with self.serialized(session, user.public_id), _storage_guard():
            await session.execute(delete(RefreshSession).where(RefreshSession.user_id == user.id))

    async def prune_expired(self, session: AsyncSession, user: User) -> None:
        """Delete sessions past expiry. Runs before reads, never on a timer."""
        async with self.serialized(session, user.public_id), _storage_guard():
            stmt = (
                delete(RefreshSession)
                .where(RefreshSession.user_id == user.id, RefreshSession.expires_at <= utcnow())
                .execution_options(synchronize_session="fetch")
            )
            await session.execute(stmt)

    async def list_sessions(self, session: AsyncSession, user: User) -> list[RefreshSession]:
        """Live sessions of ``user`` in creation order."""
        async with self.serialized(session, user.public_id), _storage_guard():
            await self.prune_expired(session, user)
            stmt = (
                select(RefreshSession)
                .where(RefreshSession.user_id == user.id)
                .order_by(RefreshSession.created_at, RefreshSession.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _evict_overflow(self, session: AsyncSession, user: User) -> None:
        stmt = (
            select(RefreshSession.id)
            .where(RefreshSession.user_id == user.id)
            .order_by(RefreshSession.created_at.desc(), RefreshSession.id.desc())
            .offset(self.config.max_sessions_per_identity)
        )
        result = await session.execute(stmt)
        overflow = list(result.scalars().all())
        if overflow:
            await session.execute(delete(RefreshSession).where(RefreshSession.id.in_(overflow)))
            logger.info(f"Evicted {len(overflow)} oldest session(s) for user {user.public_id}")


session_registry = SessionRegistry()
