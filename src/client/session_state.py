"""Client-side authentication state."""

import logging
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)


class AuthStatus(StrEnum):
    """Lifecycle of the client's view of the session."""

    EMPTY = "empty"
    POPULATED = "populated"
    CLEARED = "cleared"


@dataclass
class ClientSessionState:
    """Identity the client believes it is signed in as.

    Passed explicitly to the request gate and auth client. Holds no
    credentials: those live in the cookie jar.
    """

    identity: str | None = None
    tenant: str | None = None
    status: AuthStatus = AuthStatus.EMPTY

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.POPULATED

    def populate(self, identity: str, tenant: str | None = None) -> None:
        """Record a successful login, registration or identity check."""
        self.identity = identity
        if tenant is not None:
            self.tenant = tenant
        self.status = AuthStatus.POPULATED

    def clear(self) -> None:
        """Forget the identity (logout or failed refresh)."""
        if self.status is AuthStatus.POPULATED:
            logger.info(f"Client session cleared for {self.identity}")
        self.identity = None
        self.tenant = None
        self.status = AuthStatus.CLEARED
