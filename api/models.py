"""
API request and response models for Gatehouse REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import PublicUser, Role, TokenPair, UserStatus
from auth.passwords import MAX_PASSWORD_BYTES, password_too_long

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# Character cap only. New passwords are also checked against bcrypt's 72-byte
# limit by _password_fits_bcrypt, since non-ASCII characters take several bytes.
_PASSWORD_MAX = 72


def _password_fits_bcrypt(value: str) -> str:
    if password_too_long(value):
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = {}


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Request body for POST /api/v1/auth/sign-up."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    password: str = Field(min_length=8, max_length=_PASSWORD_MAX)
    phone: Optional[str] = Field(default=None, min_length=10, max_length=32)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _password_fits_bcrypt(value)


class SignInRequest(BaseModel):
    """No byte check here: an over-long password simply fails as invalid credentials."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    """Token pair returned by sign-in, refresh and OAuth callbacks."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type=pair.token_type,
            expires_in=pair.expires_in,
        )


class OAuthProviderInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. There is deliberately no password field."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    phone: Optional[str] = None
    role: Role
    status: UserStatus
    avatar_url: Optional[str] = None
    github_linked: bool = False
    google_linked: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            role=user.role,
            status=user.status,
            avatar_url=user.avatar_url,
            github_linked=user.github_linked,
            google_linked=user.google_linked,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users (Admin + SuperAdmin)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    password: str = Field(min_length=8, max_length=_PASSWORD_MAX)
    role: Role
    phone: Optional[str] = Field(default=None, max_length=32)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _password_fits_bcrypt(value)


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{id} (SuperAdmin). Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=320)
    role: Optional[Role] = None


class UserStatusUpdate(BaseModel):
    status: UserStatus
