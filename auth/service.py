"""
auth/service.py -- Authentication use cases: register, login, refresh, OAuth callback.

AuthService composes the directory, the token service and the OAuth resolvers.
Each method is one request/response with a fixed failure order; the order is
part of the contract and the tests pin it:

  register        validate -> hash -> build User(role=User, Active) -> create
  login           find by email -> no password hash -> verify -> issue pair
  refresh         verify -> kind must be refresh -> find subject -> issue pair
  oauth_callback  exchange code -> fetch profile -> resolve account -> issue pair

Security notes:
  [C1] Login runs bcrypt whether or not the email exists (and for OAuth-only
       accounts), so response time does not reveal which emails are
       registered. All three failure paths raise the same InvalidCredentialsError.

  Duplicate email on register is not pre-checked. The directory's UNIQUE
  constraint raises EmailAlreadyExistsError, which also covers two concurrent
  registrations.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import logging
import re
import uuid
from functools import lru_cache

from auth.directory import UserDirectory
from auth.linking import resolve_account
from auth.models import Provider, PublicUser, Role, TokenKind, TokenPair, User, UserStatus
from auth.oauth import OAuthResolver
from auth.passwords import MAX_PASSWORD_BYTES, hash_password, password_too_long, verify_password
from auth.tokens import TokenService
from core.errors import InvalidCredentialsError, InvalidTokenError, OAuthError, UserNotFoundError, ValidationError

logger = logging.getLogger("gatehouse.auth.service")

MIN_PASSWORD_LENGTH = 8

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Computed on first use so importing the module stays cheap.
    return hash_password("gatehouse_timing_dummy")


def validate_email(email: str) -> None:
    if not _EMAIL_RE.match(email or ""):
        raise ValidationError("Invalid email format")


def validate_new_account(name: str, email: str, password: str) -> None:
    """Raise ValidationError for input no transport layer should have let through.

    Shared by self-registration and admin-initiated creation.
    """
    if not name or not name.strip():
        raise ValidationError("Name is required")
    validate_email(email)
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if password_too_long(password):
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


class AuthService:
    """Authentication use cases. Stateless apart from its collaborators."""

    def __init__(
        self,
        directory: UserDirectory,
        tokens: TokenService,
        resolvers: dict[Provider, OAuthResolver] | None = None,
    ) -> None:
        self._directory = directory
        self._tokens = tokens
        self._resolvers = resolvers or {}

    # ------------------------------------------------------------------
    # Password flows
    # ------------------------------------------------------------------

    def register(self, name: str, email: str, password: str, phone: str | None = None) -> PublicUser:
        """Create a self-service account. Role is always User, status Active."""
        validate_new_account(name, email, password)
        password_hash = hash_password(password)
        user = User(
            id=str(uuid.uuid4()),
            name=name.strip(),
            email=email,
            phone=phone,
            password_hash=password_hash,
            role=Role.USER,
            status=UserStatus.ACTIVE,
        )
        created = self._directory.create(user)
        logger.info("Registered user %s", created.id)
        return PublicUser.from_user(created)

    def login(self, email: str, password: str) -> TokenPair:
        user = self._directory.find_by_email(email)
        if user is None or user.password_hash is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            verify_password(_dummy_hash(), password)
            raise InvalidCredentialsError()
        if not verify_password(user.password_hash, password):
            raise InvalidCredentialsError()
        return self._tokens.issue_token_pair(user)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate both tokens. The presented refresh token stays valid until its own expiry."""
        claims = self._tokens.verify_token(refresh_token)
        if claims.kind is not TokenKind.REFRESH:
            logger.warning("Refresh rejected: %s token presented for sub=%s", claims.kind.value, claims.sub)
            raise InvalidTokenError()
        user = self._directory.find_by_id(claims.sub)
        if user is None:
            raise UserNotFoundError()
        return self._tokens.issue_token_pair(user)

    def current_user(self, user_id: str) -> PublicUser:
        user = self._directory.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return PublicUser.from_user(user)

    # ------------------------------------------------------------------
    # OAuth flows
    # ------------------------------------------------------------------

    def resolver(self, provider: Provider) -> OAuthResolver:
        resolver = self._resolvers.get(provider)
        if resolver is None:
            raise OAuthError(f"{provider.value} sign-in is not configured")
        return resolver

    def authorization_url(self, provider: Provider, state: str | None = None) -> str:
        return self.resolver(provider).build_authorization_url(state=state)

    def oauth_callback(self, provider: Provider, code: str) -> TokenPair:
        resolver = self.resolver(provider)
        provider_token = resolver.exchange_code(code)
        profile = resolver.fetch_profile(provider_token)
        user = resolve_account(self._directory, provider, profile)
        return self._tokens.issue_token_pair(user)
