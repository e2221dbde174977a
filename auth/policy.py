"""
auth/policy.py -- Role-based authorization for user-directory operations.

authorize() is a pure function of (role, operation) plus, for deletes, the
requester and target ids. It holds no state and does no I/O: callers must
pass the requester's role as currently persisted, never the role claim from a
token, which can be up to one token lifetime stale.

  Operation           Allowed roles
  ------------------  -----------------------------------------
  LIST_USERS          Admin, SuperAdmin
  CREATE_USER         Admin, SuperAdmin
  UPDATE_USER         SuperAdmin
  DELETE_USER         SuperAdmin, and requester != target
  UPDATE_USER_STATUS  Admin, SuperAdmin

The role check runs first; the self-delete check only applies to a requester
who would otherwise be allowed to delete.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

from enum import Enum

from auth.models import Role
from core.errors import CannotDeleteSelfError, ForbiddenError


class Operation(str, Enum):
    LIST_USERS = "list_users"
    CREATE_USER = "create_user"
    UPDATE_USER = "update_user"
    DELETE_USER = "delete_user"
    UPDATE_USER_STATUS = "update_user_status"


_ADMINS = frozenset({Role.ADMIN, Role.SUPER_ADMIN})
_SUPER_ADMIN_ONLY = frozenset({Role.SUPER_ADMIN})

_ALLOWED_ROLES: dict[Operation, frozenset[Role]] = {
    Operation.LIST_USERS: _ADMINS,
    Operation.CREATE_USER: _ADMINS,
    Operation.UPDATE_USER: _SUPER_ADMIN_ONLY,
    Operation.DELETE_USER: _SUPER_ADMIN_ONLY,
    Operation.UPDATE_USER_STATUS: _ADMINS,
}


def is_allowed(role: Role, operation: Operation) -> bool:
    return role in _ALLOWED_ROLES[operation]


def authorize(
    role: Role,
    operation: Operation,
    requester_id: str | None = None,
    target_id: str | None = None,
) -> None:
    """Raise ForbiddenError or CannotDeleteSelfError if the operation is not permitted."""
    if not is_allowed(role, operation):
        raise ForbiddenError()
    if operation is Operation.DELETE_USER and requester_id is not None and requester_id == target_id:
        raise CannotDeleteSelfError()
