"""
tests/conftest.py -- Shared test fixtures for Gatehouse.

This module provides:
  - FakeDirectory: in-memory UserDirectory with the same uniqueness and
    upsert semantics as auth/store.py, for service and linking unit tests
  - directory / token_service: fresh unit-test collaborators per test
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api_client: TestClient plus seeded SuperAdmin/Admin/User accounts and tokens

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from unittest.mock import MagicMock

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import OAuthProfile, Provider, Role, User, UserStatus
from auth.oauth import OAuthResolver
from auth.passwords import hash_password
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import EmailAlreadyExistsError, InternalServerError, UserNotFoundError
from users.service import UserService

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"

# ---------------------------------------------------------------------------
# In-memory directory
# ---------------------------------------------------------------------------


class FakeDirectory:
    """Dict-backed UserDirectory.

    Records are copied on the way in and out so a caller mutating a returned
    User does not change what is "persisted" until it calls update().
    Every write is appended to self.writes for read-only assertions.
    """

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.writes: list[str] = []

    def _clashes(self, user: User) -> None:
        for other in self.users.values():
            if other.id == user.id:
                continue
            if other.email == user.email:
                raise EmailAlreadyExistsError()
            for provider in Provider:
                pid = user.provider_id(provider)
                if pid is not None and other.provider_id(provider) == pid:
                    raise InternalServerError()

    def create(self, user: User) -> User:
        self.writes.append("create")
        self._clashes(user)
        now = datetime.now(timezone.utc).isoformat()
        stored = replace(user, created_at=now, updated_at=now)
        self.users[stored.id] = stored
        return replace(stored)

    def find_by_email(self, email: str) -> User | None:
        return next((replace(u) for u in self.users.values() if u.email == email), None)

    def find_by_id(self, user_id: str) -> User | None:
        user = self.users.get(user_id)
        return replace(user) if user is not None else None

    def find_all(self) -> list[User]:
        return [replace(u) for u in self.users.values()]

    def update(self, user: User) -> User:
        self.writes.append("update")
        current = self.users.get(user.id)
        if current is None:
            raise UserNotFoundError()
        self._clashes(user)
        stored = replace(
            user,
            password_hash=current.password_hash,
            status=current.status,
            created_at=current.created_at,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )
        self.users[user.id] = stored
        return replace(stored)

    def delete(self, user_id: str) -> bool:
        self.writes.append("delete")
        return self.users.pop(user_id, None) is not None

    def update_status(self, user_id: str, status: UserStatus) -> User:
        self.writes.append("update_status")
        current = self.users.get(user_id)
        if current is None:
            raise UserNotFoundError()
        current.status = status
        return replace(current)

    def find_by_provider_id(self, provider: Provider, provider_user_id: str) -> User | None:
        return next(
            (replace(u) for u in self.users.values() if u.provider_id(provider) == provider_user_id),
            None,
        )

    def upsert_provider_user(self, provider: Provider, user: User) -> User:
        self.writes.append("upsert")
        existing = self.find_by_provider_id(provider, user.provider_id(provider))
        if existing is None:
            return self.create(user)
        stored = self.users[existing.id]
        stored.name = user.name
        stored.avatar_url = user.avatar_url
        return replace(stored)


def make_user(
    email: str,
    role: Role = Role.USER,
    password: str | None = None,
    name: str = "Test User",
    **fields,
) -> User:
    """Build an unsaved User; hashes the password when one is given."""
    return User(
        id=str(uuid.uuid4()),
        name=name,
        email=email,
        role=role,
        password_hash=hash_password(password) if password else None,
        **fields,
    )


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TEST_SECRET)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    store: UserStore
    tokens: TokenService
    github: MagicMock
    super_admin: User
    admin: User
    user: User

    def bearer(self, user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens.issue_token_pair(user).access_token}"}


def _fake_github_resolver() -> MagicMock:
    """A resolver double that never touches the network."""
    resolver = MagicMock(spec=OAuthResolver)
    resolver.provider = Provider.GITHUB
    resolver.label = "GitHub"
    resolver.build_authorization_url.side_effect = (
        lambda state=None: f"https://github.com/login/oauth/authorize?client_id=test&state={state}"
    )
    resolver.exchange_code.return_value = "gh-access-token"
    resolver.fetch_profile.return_value = OAuthProfile(
        provider_user_id="424242",
        email="octo@example.com",
        name=None,
        login="octocat",
        avatar_url="https://avatars.example.com/octo.png",
    )
    return resolver


def _patch_lifespan(store: UserStore, tokens: TokenService, resolvers: dict):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store, token service and resolver doubles into app.state
    so TestClient routes see an isolated DB and make no network calls.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.token_service = tokens
        app.state.oauth_resolvers = resolvers
        app.state.auth_service = AuthService(store, tokens, resolvers)
        app.state.user_service = UserService(store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    One TestClient per test module, backed by a module-unique shared-memory
    DB. Three accounts are seeded up front, all with password "password123".
    Rate limiting is switched off so repeated sign-ins never hit 429.
    """
    db_url = f"sqlite:///file:test_gatehouse_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    store = UserStore(db_url)
    tokens = TokenService(TEST_SECRET)
    github = _fake_github_resolver()

    super_admin = store.create(make_user("root@example.com", Role.SUPER_ADMIN, "password123", name="Root"))
    admin = store.create(make_user("admin@example.com", Role.ADMIN, "password123", name="Admin"))
    user = store.create(make_user("user@example.com", Role.USER, "password123", name="Plain User"))

    app.router.lifespan_context = _patch_lifespan(store, tokens, {Provider.GITHUB: github})
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client, store, tokens, github, super_admin, admin, user)

    limiter.enabled = True
    store.close()
