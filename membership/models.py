from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class User:
    user_id: int
    name: str
    username: str
    password_hash: str
    admin: bool
    created_at: str
    updated_at: str

    def public(self) -> Dict[str, Any]:
        """Render-safe view (no password hash)."""
        return {
            "user_id": self.user_id,
            "name": self.name,
            "username": self.username,
            "admin": self.admin,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class SessionGrant:
    """Proof of a successful password check, handed to the session manager."""

    name: str
    username: str
    admin: bool
    authenticated: bool = True


@dataclass(frozen=True)
class Session:
    session_id: str
    authenticated: bool
    name: str
    username: str
    is_admin: bool
    created_at: str
    expires_at: str
