"""Authentication models (refresh session registry)."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, utcnow


class RefreshSession(Base):
    """One refresh session per device/login of a user.

    Rows are replaced on rotation, never edited in place.
    """

    __tablename__ = "refresh_sessions"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Token data
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_id: Mapped[str] = mapped_column(String(80), unique=True, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Device metadata
    user_agent: Mapped[str] = mapped_column(String(500), nullable=False, default="unknown")
    ip_address: Mapped[str] = mapped_column(String(45), nullable=False, default="unknown")  # IPv6 max length is 45
    last_used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
