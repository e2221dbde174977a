"""
auth/linking.py -- Account resolution for OAuth sign-in.

OAuth sign-in is authentication and implicit provisioning at once: there is
no separate "sign up with GitHub" step. Given a verified OAuthProfile, the
engine picks exactly one of three outcomes, first match wins:

  EXISTING -- a user already carries this provider id. Returned unchanged.
  LINK     -- a user has the same email and no id for this provider. The
              provider id is attached, the avatar refreshed, the record
              persisted and re-read by provider id.
  CREATE   -- nobody matches. A new password-less User is provisioned through
              the directory's upsert, which is keyed on the provider id so a
              concurrent duplicate callback converges on one row.

decide() is a pure read; apply happens in resolve_account(). Splitting the two
keeps every branch testable against a fake directory.

A user whose email matches but who is already linked to a *different* id for
the same provider is not re-linked. The engine chooses CREATE and the
directory's email constraint surfaces EmailAlreadyExistsError.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum

from auth.directory import UserDirectory
from auth.models import OAuthProfile, Provider, Role, User, UserStatus
from core.errors import InternalServerError

logger = logging.getLogger("gatehouse.auth.linking")


class Resolution(str, Enum):
    EXISTING = "existing"
    LINK = "link"
    CREATE = "create"


@dataclass(frozen=True)
class Decision:
    resolution: Resolution
    user: User | None = None  # the matched record for EXISTING / LINK


def decide(directory: UserDirectory, provider: Provider, profile: OAuthProfile) -> Decision:
    """Classify a profile against the directory without writing anything."""
    existing = directory.find_by_provider_id(provider, profile.provider_user_id)
    if existing is not None:
        return Decision(Resolution.EXISTING, existing)

    by_email = directory.find_by_email(profile.email)
    if by_email is not None and by_email.provider_id(provider) is None:
        return Decision(Resolution.LINK, by_email)

    return Decision(Resolution.CREATE)


def resolve_account(directory: UserDirectory, provider: Provider, profile: OAuthProfile) -> User:
    """Return the local User for a provider identity, linking or creating as needed."""
    decision = decide(directory, provider, profile)

    if decision.resolution is Resolution.EXISTING:
        return decision.user

    if decision.resolution is Resolution.LINK:
        return _link(directory, provider, profile, decision.user)

    return _create(directory, provider, profile)


def _link(directory: UserDirectory, provider: Provider, profile: OAuthProfile, user: User) -> User:
    user.set_provider_id(provider, profile.provider_user_id)
    user.avatar_url = profile.avatar_url
    directory.update(user)
    logger.info("Linked %s id %s to user %s", provider.value, profile.provider_user_id, user.id)

    linked = directory.find_by_provider_id(provider, profile.provider_user_id)
    if linked is None:
        logger.error(
            "Consistency violation: user %s not found by %s id %s right after linking",
            user.id,
            provider.value,
            profile.provider_user_id,
        )
        raise InternalServerError()
    return linked


def _create(directory: UserDirectory, provider: Provider, profile: OAuthProfile) -> User:
    user = User(
        id=str(uuid.uuid4()),
        name=profile.display_name,
        email=profile.email,
        role=Role.USER,
        status=UserStatus.ACTIVE,
        password_hash=None,
        avatar_url=profile.avatar_url,
    )
    user.set_provider_id(provider, profile.provider_user_id)
    created = directory.upsert_provider_user(provider, user)
    logger.info("Provisioned user %s from %s id %s", created.id, provider.value, profile.provider_user_id)
    return created
