"""
users/service.py -- Privileged user-directory use cases.

Every method follows the same order:

  1. Load the requester's live record (UserNotFoundError if it is gone).
  2. auth.policy.authorize() with the *persisted* role.
  3. Perform the directory operation.
  4. Return PublicUser projections (never the password hash).

Target existence is checked after authorization, so an unprivileged caller
cannot probe which user ids exist.

Layer rule: may import from auth/ and core/; never from api/.
"""

from __future__ import annotations

import logging
import uuid

from auth.directory import UserDirectory
from auth.models import PublicUser, Role, User, UserStatus
from auth.passwords import hash_password
from auth.policy import Operation, authorize
from auth.service import validate_email, validate_new_account
from core.errors import UserNotFoundError, ValidationError

logger = logging.getLogger("gatehouse.users.service")


class UserService:
    """User management for Admin and SuperAdmin requesters."""

    def __init__(self, directory: UserDirectory) -> None:
        self._directory = directory

    def _requester_role(self, requester_id: str) -> Role:
        requester = self._directory.find_by_id(requester_id)
        if requester is None:
            raise UserNotFoundError()
        return requester.role

    def list_users(self, requester_id: str) -> list[PublicUser]:
        authorize(self._requester_role(requester_id), Operation.LIST_USERS)
        return [PublicUser.from_user(u) for u in self._directory.find_all()]

    def create_user(
        self,
        requester_id: str,
        name: str,
        email: str,
        password: str,
        role: Role,
        phone: str | None = None,
    ) -> PublicUser:
        """Create a password account with any role. Admin and SuperAdmin only."""
        authorize(self._requester_role(requester_id), Operation.CREATE_USER)
        validate_new_account(name, email, password)
        user = User(
            id=str(uuid.uuid4()),
            name=name.strip(),
            email=email,
            phone=phone,
            password_hash=hash_password(password),
            role=role,
            status=UserStatus.ACTIVE,
        )
        created = self._directory.create(user)
        logger.info("User %s created user %s with role %s", requester_id, created.id, role.value)
        return PublicUser.from_user(created)

    def update_user(
        self,
        requester_id: str,
        target_id: str,
        name: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        role: Role | None = None,
    ) -> PublicUser:
        """Change profile fields and/or role. SuperAdmin only. Omitted fields are kept."""
        authorize(self._requester_role(requester_id), Operation.UPDATE_USER)
        if name is None and phone is None and email is None and role is None:
            raise ValidationError("No fields to update")
        if name is not None and not name.strip():
            raise ValidationError("Name cannot be empty")
        if email is not None:
            validate_email(email)

        user = self._directory.find_by_id(target_id)
        if user is None:
            raise UserNotFoundError()

        if name is not None:
            user.name = name.strip()
        if phone is not None:
            user.phone = phone
        if email is not None:
            user.email = email
        if role is not None:
            user.role = role

        updated = self._directory.update(user)
        logger.info("User %s updated user %s", requester_id, target_id)
        return PublicUser.from_user(updated)

    def delete_user(self, requester_id: str, target_id: str) -> None:
        """Permanently delete a user. SuperAdmin only, and never oneself."""
        authorize(
            self._requester_role(requester_id),
            Operation.DELETE_USER,
            requester_id=requester_id,
            target_id=target_id,
        )
        if self._directory.find_by_id(target_id) is None:
            raise UserNotFoundError()
        self._directory.delete(target_id)
        logger.info("User %s deleted user %s", requester_id, target_id)

    def update_user_status(self, requester_id: str, target_id: str, status: UserStatus) -> PublicUser:
        """Suspend or re-activate a user. Admin and SuperAdmin."""
        authorize(self._requester_role(requester_id), Operation.UPDATE_USER_STATUS)
        updated = self._directory.update_status(target_id, status)
        logger.info("User %s set status of %s to %s", requester_id, target_id, status.value)
        return PublicUser.from_user(updated)
