"""
auth/directory.py -- The user directory contract the authentication core uses.

Services and the account resolution engine are written against UserDirectory
only. auth/store.py is the production adapter (SQLAlchemy Core); the test
suite uses an in-memory fake with the same shape.

Contract rules every implementation must honour:
  - email, github_id and google_id are unique (provider ids only when set).
  - create() and update() raise EmailAlreadyExistsError on an email clash.
  - upsert_provider_user() is idempotent on the provider id: a conflicting
    insert updates the existing row (name, avatar_url) instead of failing.
  - Each method is one storage transaction; callers never need to lock.
  - Lookups return None for "not found"; update_status() and update() raise
    UserNotFoundError when the target id does not exist.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

from typing import Protocol

from auth.models import Provider, User, UserStatus


class UserDirectory(Protocol):
    def create(self, user: User) -> User: ...

    def find_by_email(self, email: str) -> User | None: ...

    def find_by_id(self, user_id: str) -> User | None: ...

    def find_all(self) -> list[User]: ...

    def update(self, user: User) -> User: ...

    def delete(self, user_id: str) -> bool: ...

    def update_status(self, user_id: str, status: UserStatus) -> User: ...

    def find_by_provider_id(self, provider: Provider, provider_user_id: str) -> User | None: ...

    def upsert_provider_user(self, provider: Provider, user: User) -> User: ...
