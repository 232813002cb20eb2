"""User domain models."""

from datetime import datetime
from enum import StrEnum

from pwdlib import PasswordHash
from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, PublicIdMixin, TimestampMixin, as_utc, utcnow
from src.features.company.models import Company


class UserRole(StrEnum):
    """User roles inside a company.

    SUPER_ADMIN: Created with the company at registration. Owns the tenant.
    ADMIN, MANAGER, TRAINER: Staff roles managed by the company.
    VIEWER: Read-only access.
    """

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    TRAINER = "trainer"
    VIEWER = "viewer"


class UserStatus(StrEnum):
    """User account status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    LOCKED = "locked"


pwd_hasher = PasswordHash.recommended()


class User(Base, PublicIdMixin, TimestampMixin):
    """Principal that authenticates and owns refresh sessions."""

    __tablename__ = "users"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Tenant
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    company: Mapped[Company] = relationship(Company, back_populates="users", lazy="joined")

    # Identity
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Authentication
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    # Authorization
    role: Mapped[str] = mapped_column(
        Enum(UserRole, native_enum=False, length=50),
        nullable=False,
        default=UserRole.VIEWER.value,
        server_default=UserRole.VIEWER.value,
    )

    # Status
    status: Mapped[str] = mapped_column(
        Enum(UserStatus, native_enum=False, length=50),
        nullable=False,
        default=UserStatus.ACTIVE.value,
        server_default=UserStatus.ACTIVE.value,
        index=True,
    )

    # Audit
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        """Computed property: user is active if status is not INACTIVE."""
        return self.status != UserStatus.INACTIVE.value

    def verify_password(self, plain_password: str) -> bool:
        """Verify a password against the Argon2 hash."""
        return pwd_hasher.verify(plain_password, self.hashed_password)

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using Argon2."""
        return pwd_hasher.hash(password)

    def is_locked(self) -> bool:
        """Check if account is locked."""
        if self.locked_until is None:
            return False
        return as_utc(self.locked_until) > utcnow()
