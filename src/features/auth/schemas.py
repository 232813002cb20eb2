"""Authentication schemas (DTOs)."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from src.shared.validators.password import validate_password_strength


# Request schemas
class RegisterRequest(BaseModel):
    """Company registration request; creates the company and its admin user."""

    company_name: str = Field(..., min_length=1, max_length=255)
    name: str = Field("Administrator", min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(
        ..., min_length=8, max_length=128, description="Password (8-128 characters, upper, lower and digit)"
    )

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, value: str) -> str:
        """Validate password strength using shared validator."""
        return validate_password_strength(value)


class LoginRequest(BaseModel):
    """Login request.

    The password is not strength-checked here so weak and unknown passwords
    fail the same way.
    """

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


# Response schemas
class IdentityResponse(BaseModel):
    """Identity and tenant of the caller."""

    identity: str
    tenant: str


class CurrentIdentityResponse(IdentityResponse):
    """Claims of the caller's access credential."""

    role: str


class RefreshResponse(BaseModel):
    """Identity whose credentials were rotated."""

    identity: str


class MessageResponse(BaseModel):
    message: str


class DeviceInfoResponse(BaseModel):
    user_agent: str
    ip_address: str


class SessionResponse(BaseModel):
    """One active session of the caller."""

    model_config = ConfigDict(from_attributes=True)

    device_info: DeviceInfoResponse
    last_used: datetime
    created_at: datetime


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
