"""Company (tenant) model."""

from enum import StrEnum

from sqlalchemy import Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, PublicIdMixin, TimestampMixin


class CompanyPlan(StrEnum):
    """Billing plan of a company."""

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class Company(Base, PublicIdMixin, TimestampMixin):
    """Tenant owning a set of users.

    Only ``public_id`` is embedded in access credentials.
    """

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    plan: Mapped[str] = mapped_column(
        Enum(CompanyPlan, native_enum=False, length=50),
        nullable=False,
        default=CompanyPlan.FREE.value,
        server_default=CompanyPlan.FREE.value,
    )

    users = relationship("User", back_populates="company")
