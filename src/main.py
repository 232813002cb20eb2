import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from src.config.logging_config import configure_logging
from src.config.settings import settings
from src.database.client import close_db, init_db
from src.features.auth.exceptions import AuthenticationException
from src.features.auth.router import router as auth_router
from src.features.auth.transport import cookie_transport
from src.shared.rate_limit.limiter import limiter, rate_limit_handler

configure_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)


async def authentication_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer 401 and, for rejected credentials, expire both cookies."""
    if not isinstance(exc, AuthenticationException):
        raise exc
    response = JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "reason": exc.reason.value},
    )
    if exc.clear_cookies:
        cookie_transport.clear(response)
    return response


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Handle startup and shutdown events."""
    # Startup: missing signing secrets abort here
    settings.validate_signing_secrets()
    await init_db()
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
    docs_url=None if settings.environment == "production" else "/docs",
    redoc_url=None if settings.environment == "production" else "/redoc",
)

# Add rate limiting middleware
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_exception_handler(AuthenticationException, authentication_exception_handler)

# Cookie transport needs credentialed CORS with explicit origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Router Registration
routers: list[APIRouter] = [
    auth_router,
]

for router in routers:
    app.include_router(router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"message": settings.app_name, "status": "running"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
