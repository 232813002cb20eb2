"""Credential codec: sign and verify access and refresh credentials.

Access and refresh credentials are JWTs signed with two distinct secrets and
tagged with a ``type`` claim. Verification selects the secret from the expected
type and re-checks the tag, so neither credential can stand in for the other.
"""

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

import jwt
from jwt.exceptions import InvalidTokenError

from src.config.settings import ConfigError, Settings, settings


class CredentialType(StrEnum):
    """Discriminator embedded in every credential."""

    ACCESS = "access"
    REFRESH = "refresh"


class InvalidCredential(Exception):
    """Raised when a credential has a bad signature, is expired, or has the wrong type."""

    pass


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """Claims carried by an access credential."""

    identity: str
    tenant: str
    role: str
    expires_at: datetime
    type: CredentialType = CredentialType.ACCESS


@dataclass(frozen=True, slots=True)
class RefreshClaims:
    """Claims carried by a refresh credential.

    Only ``token_id`` is checked against server state.
    """

    identity: str
    token_id: str
    expires_at: datetime
    type: CredentialType = CredentialType.REFRESH


def new_token_id() -> str:
    """Generate an opaque refresh token id."""
    return secrets.token_hex(40)


def _secret_for(credential_type: CredentialType, config: Settings) -> str:
    secret = config.jwt_access_secret if credential_type is CredentialType.ACCESS else config.jwt_refresh_secret
    if not secret:
        raise ConfigError(f"Signing secret for {credential_type.value} credentials is not configured")
    return secret


def _encode(payload: dict[str, Any], credential_type: CredentialType, lifetime: timedelta, config: Settings) -> str:
    now = datetime.now(UTC)
    payload.update({"type": credential_type.value, "iat": now, "exp": now + lifetime})
    return jwt.encode(payload, _secret_for(credential_type, config), algorithm=config.jwt_algorithm)


def issue_access(identity: str, tenant: str, role: str, config: Settings = settings) -> str:
    """Issue a signed access credential valid for the configured access lifetime.

    Args:
        identity: Public id of the user
        tenant: Public id of the user's company
        role: Role of the user
        config: Settings providing the signing secret and lifetime

    Returns:
        Encoded JWT string

    Raises:
        ConfigError: If the access signing secret is unset

    """
    return _encode(
        {"sub": identity, "tenant": tenant, "role": role},
        CredentialType.ACCESS,
        timedelta(minutes=config.access_token_expire_minutes),
        config,
    )


def issue_refresh(token_id: str, identity: str, config: Settings = settings) -> str:
    """Issue a signed refresh credential wrapping ``token_id``.

    Raises:
        ConfigError: If the refresh signing secret is unset

    """
    return _encode(
        {"sub": identity, "tid": token_id},
        CredentialType.REFRESH,
        timedelta(days=config.refresh_token_expire_days),
        config,
    )


def verify(
    token: str | None, expected_type: CredentialType, config: Settings = settings
) -> AccessClaims | RefreshClaims:
    """Verify a credential and return its claims.

    Args:
        token: Encoded credential, or None when the cookie is absent
        expected_type: Which credential the caller requires
        config: Settings providing secrets

    Returns:
        AccessClaims or RefreshClaims, matching ``expected_type``

    Raises:
        InvalidCredential: If the token is missing, tampered, expired, malformed or of another type
        ConfigError: If the signing secret for ``expected_type`` is unset

    """
    if not token:
        raise InvalidCredential("Credential missing")

    secret = _secret_for(expected_type, config)
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[config.jwt_algorithm],
            options={"require": ["exp", "sub", "type"]},
        )
    except InvalidTokenError as err:
        raise InvalidCredential("Invalid or expired credential") from err

    if payload.get("type") != expected_type.value:
        raise InvalidCredential(f"Invalid credential type, expected {expected_type.value}")

    expires_at = datetime.fromtimestamp(payload["exp"], tz=UTC)
    try:
        if expected_type is CredentialType.ACCESS:
            return AccessClaims(
                identity=str(payload["sub"]),
                tenant=str(payload["tenant"]),
                role=str(payload["role"]),
                expires_at=expires_at,
            )
        return RefreshClaims(identity=str(payload["sub"]), token_id=str(payload["tid"]), expires_at=expires_at)
    except KeyError as err:
        raise InvalidCredential("Invalid credential payload") from err


@dataclass(frozen=True, slots=True)
class TokenPair:
    """Access and refresh credentials issued together."""

    access: str
    refresh: str


def issue_pair(identity: str, tenant: str, role: str, token_id: str, config: Settings = settings) -> TokenPair:
    """Issue a fresh access credential and a refresh credential for ``token_id``."""
    return TokenPair(
        access=issue_access(identity, tenant, role, config),
        refresh=issue_refresh(token_id, identity, config),
    )


def verify_access(token: str | None, config: Settings = settings) -> AccessClaims:
    """Verify an access credential."""
    claims = verify(token, CredentialType.ACCESS, config)
    if not isinstance(claims, AccessClaims):
        raise InvalidCredential("Invalid credential type, expected access")
    return claims


def verify_refresh(token: str | None, config: Settings = settings) -> RefreshClaims:
    """Verify a refresh credential."""
    claims = verify(token, CredentialType.REFRESH, config)
    if not isinstance(claims, RefreshClaims):
        raise InvalidCredential("Invalid credential type, expected refresh")
    return claims
