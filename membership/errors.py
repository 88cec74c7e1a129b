"""Error taxonomy for the membership site.

Every error carries a short machine `code` (stable, safe to log) and a
human `message` that is safe to render to the visitor.
"""

from __future__ import annotations

from typing import Optional


class MembershipError(Exception):
    code = "membership_error"
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(MembershipError):
    """User-correctable outcome of an auth operation."""

    code = "auth_error"


class ValidationError(AuthError):
    code = "validation_error"
    default_message = "Invalid input"


class DuplicateUser(AuthError):
    code = "username_exists"
    default_message = "Email already exists"


class UserNotFound(AuthError):
    code = "user_not_found"
    default_message = "User not found"


class InvalidPassword(AuthError):
    code = "invalid_password"
    default_message = "Invalid password"


class Unauthorized(AuthError):
    code = "unauthorized"
    default_message = "You are not authorized to access this page"


class AlreadyAuthenticated(AuthError):
    """Not a failure: the caller already holds a live authenticated session."""

    code = "already_authenticated"
    default_message = "Already logged in"


class StorageUnavailable(MembershipError):
    code = "storage_unavailable"
    default_message = "Service temporarily unavailable"
