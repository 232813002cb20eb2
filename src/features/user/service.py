"""User service layer."""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.features.company.models import Company

from .exceptions import EmailAlreadyExists
from .models import User, UserRole, UserStatus

logger = logging.getLogger(__name__)


class UserService:
    """Service for user lookups and company onboarding."""

    @staticmethod
    async def get_by_public_id(session: AsyncSession, public_id: str) -> User | None:
        """Get user by public id (the identity carried in credentials)."""
        stmt = select(User).where(User.public_id == public_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(session: AsyncSession, email: str) -> User | None:
        """Get user by email, case-insensitively."""
        stmt = select(User).where(func.lower(User.email) == email.lower())
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def register_company(
        session: AsyncSession,
        company_name: str,
        email: str,
        password: str,
        name: str = "Administrator",
    ) -> User:
        """Create a company together with its super admin user.

        Args:
            session: Database session
            company_name: Display name of the company
            email: Login email, shared by the company and its admin
            password: Plain text password
            name: Display name of the admin user

        Returns:
            The created admin User, flushed so it has ids

        Raises:
            EmailAlreadyExists: If the email is already registered

        """
        email = email.lower()
        stmt = select(Company.id).where(func.lower(Company.email) == email)
        if (await session.execute(stmt)).first() is not None or await UserService.get_by_email(session, email):
            raise EmailAlreadyExists()

        company = Company(name=company_name, email=email)
        user = User(
            company=company,
            email=email,
            name=name,
            hashed_password=User.hash_password(password),
            role=UserRole.SUPER_ADMIN.value,
            status=UserStatus.ACTIVE.value,
        )
        session.add_all([company, user])
        await session.flush()

        logger.info(f"Company registered: {company.public_id} (admin {user.public_id})")
        return user
