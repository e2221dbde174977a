"""
auth/models.py -- Domain dataclasses and enums for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; stores, services and routes do the work.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """The four fixed roles. Values are persisted and embedded in tokens as-is."""

    ADMIN = "Admin"
    SUPER_ADMIN = "SuperAdmin"
    USER = "User"
    MENTOR = "Mentor"


class UserStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED = "Suspended"


class Provider(str, Enum):
    """External OAuth identity sources."""

    GITHUB = "github"
    GOOGLE = "google"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass
class User:
    """Represents an identity record in the user directory.

    password_hash is None for OAuth-only users (they have no local password).
    github_id / google_id are None until the user signs in with that provider,
    at which point account linking fills them in. Provider ids are stored as
    strings -- GitHub's numeric id is stringified on the way in.

    created_at / updated_at are server-assigned ISO-8601 UTC strings and stay
    None on records that have not been persisted yet.
    """

    id: str
    name: str
    email: str
    role: Role = Role.USER
    status: UserStatus = UserStatus.ACTIVE
    phone: str | None = None
    password_hash: str | None = None  # None = OAuth-only user
    github_id: str | None = None
    google_id: str | None = None
    avatar_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def provider_id(self, provider: Provider) -> str | None:
        return self.github_id if provider is Provider.GITHUB else self.google_id

    def set_provider_id(self, provider: Provider, value: str | None) -> None:
        if provider is Provider.GITHUB:
            self.github_id = value
        else:
            self.google_id = value


@dataclass(frozen=True)
class PublicUser:
    """Public-safe projection of a User. Carries no credential material.

    Built only through from_user() so a new secret field on User can never
    leak by accident -- it has to be added here explicitly.
    """

    id: str
    name: str
    email: str
    role: Role
    status: UserStatus
    phone: str | None = None
    avatar_url: str | None = None
    github_linked: bool = False
    google_linked: bool = False
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            status=user.status,
            phone=user.phone,
            avatar_url=user.avatar_url,
            github_linked=user.github_id is not None,
            google_linked=user.google_id is not None,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


@dataclass(frozen=True)
class TokenClaims:
    """Decoded payload of a bearer token.

    The identity snapshot (name, email, phone, role, avatar_url) is what the
    user looked like at issuance. It is fine for display; authorization must
    re-read the live role from the directory.
    """

    sub: str
    kind: TokenKind
    iat: datetime
    exp: datetime
    name: str
    email: str
    role: Role
    phone: str | None = None
    avatar_url: str | None = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds
    token_type: str = "Bearer"  # noqa: S105 -- OAuth token type, not a password


@dataclass(frozen=True)
class OAuthProfile:
    """Provider-agnostic identity returned by an OAuth resolver.

    email is always a verified address -- resolvers refuse to build a profile
    otherwise, because email is the join key for account linking.
    login is the provider handle (GitHub username); Google has none.
    """

    provider_user_id: str
    email: str
    name: str | None = None
    login: str | None = None
    avatar_url: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.login or self.email
