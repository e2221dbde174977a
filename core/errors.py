"""
core/errors.py -- Error taxonomy shared by every Gatehouse layer.

Every failure a use case can report is an AppError subclass. Each class owns
its boundary mapping (code + HTTP status) so api/main.py can render any of them
with a single exception handler instead of a per-route try/except ladder.

Messages are safe to show to clients. Raw storage or provider errors are logged
where they are caught and never stored on the exception -- the only exception
is OAuthError, whose message wraps the provider failure on purpose so the
caller can tell a denied consent from a broken provider.

Layer rule: core/ is the kernel. This module imports nothing from the project.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for all Gatehouse errors surfaced to the boundary layer."""

    code: str = "internal_error"
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentialsError(AppError):
    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid credentials"


class UserNotFoundError(AppError):
    code = "user_not_found"
    status_code = 404
    default_message = "User not found"


class EmailAlreadyExistsError(AppError):
    code = "email_already_exists"
    status_code = 409
    default_message = "Email already exists"


class TokenCreationError(AppError):
    code = "token_creation_error"
    status_code = 500
    default_message = "Token creation error"


class InvalidTokenError(AppError):
    code = "invalid_token"
    status_code = 401
    default_message = "Invalid token"


class PasswordHashingError(AppError):
    code = "password_hashing_error"
    status_code = 500
    default_message = "Password hashing error"


class ValidationError(AppError):
    code = "validation_error"
    status_code = 400
    default_message = "Validation error"


class ForbiddenError(AppError):
    code = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class CannotDeleteSelfError(AppError):
    code = "cannot_delete_self"
    status_code = 400
    default_message = "Cannot delete your own account"


class OAuthError(AppError):
    """A provider exchange or profile fetch failed.

    The message is prefixed with "OAuth error: " so the boundary response reads
    the same whether the failure came from transport, parsing or the provider.
    """

    code = "oauth_error"
    status_code = 400
    default_message = "OAuth error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(f"OAuth error: {message}" if message else None)


class NoVerifiedEmailError(OAuthError):
    """The provider could not supply a verified email (the account-linking key)."""


class InternalServerError(AppError):
    """Storage or consistency failure not otherwise classified."""
