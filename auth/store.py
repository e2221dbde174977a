"""
auth/store.py -- SQLAlchemy Core implementation of the UserDirectory contract.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Services never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  UNIQUE(email), UNIQUE(github_id) and UNIQUE(google_id) are declared on the
  table and are the only concurrency-safety mechanism in the system. Both
  SQLite and PostgreSQL treat NULLs as distinct in UNIQUE constraints, so any
  number of users may leave a provider id unset.

  A violated email constraint is translated to EmailAlreadyExistsError. Any
  other integrity or database failure is logged with the raw driver message
  and re-raised as InternalServerError -- driver text never reaches clients.

Upsert:
  upsert_provider_user() uses the dialect's INSERT ... ON CONFLICT (provider
  column) DO UPDATE, so two concurrent first-time OAuth logins for the same
  provider id end up as one row. Supported dialects: sqlite, postgresql.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import Provider, Role, User, UserStatus
from core.errors import EmailAlreadyExistsError, InternalServerError, UserNotFoundError

logger = logging.getLogger("gatehouse.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(320), nullable=False, unique=True),
    Column("phone", String(32)),
    Column("password_hash", Text),  # NULL for OAuth-only users
    Column("role", String(20), nullable=False, server_default=Role.USER.value),
    Column("status", String(20), nullable=False, server_default=UserStatus.ACTIVE.value),
    Column("github_id", String(64), unique=True),
    Column("google_id", String(64), unique=True),
    Column("avatar_url", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_PROVIDER_COLUMNS = {
    Provider.GITHUB: _users.c.github_id,
    Provider.GOOGLE: _users.c.google_id,
}

_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_email_violation(exc: IntegrityError) -> bool:
    # sqlite: "UNIQUE constraint failed: users.email"
    # postgresql: duplicate key value violates unique constraint "users_email_key"
    return "email" in str(exc.orig).lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///:memory:")
        store.create(User(id=str(uuid4()), name="Ann", email="ann@x.com", password_hash=h))
        user = store.find_by_email("ann@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool; connections cross threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        _metadata.create_all(self.engine)

    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        """Yield a connection, translating storage failures into AppErrors."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError as exc:
            if _is_email_violation(exc):
                raise EmailAlreadyExistsError() from exc
            logger.error("Integrity error in user store: %s", exc.orig)
            raise InternalServerError() from exc
        except SQLAlchemyError as exc:
            logger.error("Database error in user store: %s", exc)
            raise InternalServerError() from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self._connection() as conn:
            count = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (count or 0) > 0

    def find_by_id(self, user_id: str) -> User | None:
        with self._connection() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self._connection() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_provider_id(self, provider: Provider, provider_user_id: str) -> User | None:
        column = _PROVIDER_COLUMNS[provider]
        with self._connection() as conn:
            row = conn.execute(_users.select().where(column == str(provider_user_id))).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_all(self) -> list[User]:
        """Return all users, oldest first."""
        with self._connection() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.created_at, _users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, user: User) -> User:
        """Insert a new user and return the persisted record.

        Raises EmailAlreadyExistsError if the email is taken. The check is the
        UNIQUE constraint itself, never a prior SELECT, so two concurrent
        registrations cannot both succeed.
        """
        now = _now_iso()
        with self._connection() as conn:
            conn.execute(_users.insert().values(**_user_to_row(user), created_at=now, updated_at=now))
            row = conn.execute(_users.select().where(_users.c.id == user.id)).fetchone()
            conn.commit()
        return _row_to_user(row)

    def update(self, user: User) -> User:
        """Persist the mutable fields of an existing user.

        Mutable: name, email, phone, role, github_id, google_id, avatar_url.
        Status has its own method; password_hash and created_at are never
        touched here.
        """
        with self._connection() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user.id)
                .values(
                    name=user.name,
                    email=user.email,
                    phone=user.phone,
                    role=user.role.value,
                    github_id=user.github_id,
                    google_id=user.google_id,
                    avatar_url=user.avatar_url,
                    updated_at=_now_iso(),
                )
            )
            if result.rowcount == 0:
                raise UserNotFoundError()
            row = conn.execute(_users.select().where(_users.c.id == user.id)).fetchone()
            conn.commit()
        return _row_to_user(row)

    def update_status(self, user_id: str, status: UserStatus) -> User:
        with self._connection() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(status=status.value, updated_at=_now_iso())
            )
            if result.rowcount == 0:
                raise UserNotFoundError()
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            conn.commit()
        return _row_to_user(row)

    def delete(self, user_id: str) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found."""
        with self._connection() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def upsert_provider_user(self, provider: Provider, user: User) -> User:
        """Insert an OAuth-provisioned user, or refresh the row that already owns its provider id.

        On conflict only name, avatar_url and updated_at change; the existing
        id, email, role and status win. The canonical row is re-read by
        provider id so the caller always gets the surviving record.
        """
        column = _PROVIDER_COLUMNS[provider]
        provider_user_id = user.provider_id(provider)
        if provider_user_id is None:
            raise ValueError(f"upsert_provider_user requires a {provider.value} id")

        insert = _UPSERT_INSERTS.get(self.engine.dialect.name)
        if insert is None:
            raise NotImplementedError(f"Provider upsert is not supported on {self.engine.dialect.name!r}")

        now = _now_iso()
        stmt = insert(_users).values(**_user_to_row(user), created_at=now, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[column.name],
            set_={
                "name": stmt.excluded.name,
                "avatar_url": stmt.excluded.avatar_url,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with self._connection() as conn:
            conn.execute(stmt)
            row = conn.execute(_users.select().where(column == provider_user_id)).fetchone()
            conn.commit()
        return _row_to_user(row)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _user_to_row(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "password_hash": user.password_hash,
        "role": user.role.value,
        "status": user.status.value,
        "github_id": user.github_id,
        "google_id": user.google_id,
        "avatar_url": user.avatar_url,
    }


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        password_hash=row.password_hash,
        role=Role(row.role),
        status=UserStatus(row.status),
        github_id=row.github_id,
        google_id=row.google_id,
        avatar_url=row.avatar_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
