"""Authentication router (cookie-based session endpoints)."""

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.config.settings import settings
from src.database.dependencies import get_db_session
from src.features.user.models import User
from src.features.user.service import UserService
from src.shared.rate_limit.limiter import limiter

from .credentials import AccessClaims
from .dependencies import get_current_claims, get_current_user, get_device_info
from .exceptions import InvalidCredentialsException
from .rotation import rotation_engine
from .schemas import (
    CurrentIdentityResponse,
    DeviceInfoResponse,
    IdentityResponse,
    LoginRequest,
    MessageResponse,
    RefreshResponse,
    RegisterRequest,
    SessionListResponse,
    SessionResponse,
)
from .service import AuthService
from .transport import cookie_transport

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=IdentityResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.login_rate_limit)
async def register(
    data: RegisterRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
):
    """Register a company with its admin user and start a session.

    Sets the access and refresh cookies.
    """
    user = await UserService.register_company(session, data.company_name, data.email, data.password, data.name)
    tokens = await AuthService.start_session(session, user, get_device_info(request))
    await session.commit()

    cookie_transport.set_pair(response, tokens.access, tokens.refresh)
    return IdentityResponse(identity=user.public_id, tenant=user.company.public_id)


@router.post("/login", response_model=IdentityResponse)
@limiter.limit(settings.login_rate_limit)
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
):
    """Login with email and password.

    Sets the access and refresh cookies. Every failure answers with the
    same 401.
    """
    user = await AuthService.authenticate_user(session, data.email, data.password)

    if not user:
        # persist failed-attempt counters before rejecting
        await session.commit()
        raise InvalidCredentialsException()

    tokens = await AuthService.start_session(session, user, get_device_info(request))
    await session.commit()

    cookie_transport.set_pair(response, tokens.access, tokens.refresh)
    logger.info(f"User logged in: {user.public_id}")
    return IdentityResponse(identity=user.public_id, tenant=user.company.public_id)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(request: Request, response: Response, session: AsyncSession = Depends(get_db_session)):
    """Rotate the refresh cookie and issue a new cookie pair.

    On any rejection both cookies are cleared.
    """
    outcome = await rotation_engine.rotate(session, cookie_transport.read_refresh(request))
    await session.commit()

    cookie_transport.set_pair(response, outcome.tokens.access, outcome.tokens.refresh)
    return RefreshResponse(identity=outcome.user.public_id)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove the caller's session and clear both cookies."""
    await AuthService.logout(session, current_user, cookie_transport.read_refresh(request))
    await session.commit()

    cookie_transport.clear(response)
    return MessageResponse(message="Successfully logged out")


@router.get("/me", response_model=CurrentIdentityResponse)
async def current_identity(claims: AccessClaims = Depends(get_current_claims)):
    """Identity of the caller, taken from the access cookie only."""
    return CurrentIdentityResponse(identity=claims.identity, tenant=claims.tenant, role=claims.role)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Active sessions of the caller."""
    sessions = await AuthService.list_sessions(session, current_user)
    await session.commit()
    return SessionListResponse(
        sessions=[
            SessionResponse(
                device_info=DeviceInfoResponse(user_agent=s.user_agent, ip_address=s.ip_address),
                last_used=s.last_used_at,
                created_at=s.created_at,
            )
            for s in sessions
        ]
    )
