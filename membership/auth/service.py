"""Auth service: signup, login, logout and role management.

Owns no state. Every operation takes an open connection and either returns a
value or raises an `AuthError` subclass; routes translate those outcomes into a
page or a redirect in one place.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from membership.errors import (
    AlreadyAuthenticated,
    DuplicateUser,
    InvalidPassword,
    Unauthorized,
    UserNotFound,
)
from membership.models import Session, SessionGrant, User

from . import crud
from . import sessions as session_store
from .security import hash_password, verify_password
from .validation import validate_login, validate_signup


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def signup(
    conn: Any,
    *,
    name: Optional[str],
    username: Optional[str],
    password: Optional[str],
    rounds: Optional[int] = None,
) -> User:
    form = validate_signup({"name": name, "username": username, "password": password})

    # insert_user still enforces uniqueness under concurrent signups.
    if crud.find_by_username(conn, form.username) is not None:
        _debug(f"Signup rejected, username exists: {crud.normalize_username(form.username)}")
        raise DuplicateUser()

    user = crud.insert_user(
        conn,
        name=form.name,
        username=form.username,
        password_hash=hash_password(form.password, rounds=rounds),
        admin=False,
    )
    _debug(f"User created: {user.username}")
    return user


def login(
    conn: Any,
    *,
    username: Optional[str],
    password: Optional[str],
    current: Optional[Session] = None,
) -> SessionGrant:
    if current is not None and current.authenticated:
        raise AlreadyAuthenticated()

    form = validate_login({"username": username, "password": password})

    user = crud.find_by_username(conn, form.username)
    if user is None:
        _debug("Login failed: user not found")
        raise UserNotFound()
    if not verify_password(form.password, user.password_hash):
        _debug(f"Login failed: invalid password for {user.username}")
        raise InvalidPassword()

    _debug(f"User logged in: {user.username} admin={user.admin}")
    return SessionGrant(name=user.name, username=user.username, admin=user.admin)


def logout(conn: Any, session_id: Optional[str]) -> None:
    session_store.destroy(conn, session_id)
    _debug("User logged out")


def _require_admin(session: Optional[Session]) -> Session:
    if session is None or not session.authenticated or not session.is_admin:
        raise Unauthorized()
    return session


def list_users(conn: Any, session: Optional[Session]) -> List[User]:
    _require_admin(session)
    return crud.list_users(conn)


def list_public_users(conn: Any, session: Optional[Session]) -> List[Dict[str, Any]]:
    return [u.public() for u in list_users(conn, session)]


def promote(conn: Any, session: Optional[Session], username: str) -> User:
    admin = _require_admin(session)
    user = crud.update_admin_flag(conn, username, True)
    _debug(f"User promoted: {user.username} by={admin.username}")
    return user


def demote(conn: Any, session: Optional[Session], username: str) -> User:
    admin = _require_admin(session)
    user = crud.update_admin_flag(conn, username, False)
    _debug(f"User demoted: {user.username} by={admin.username}")
    return user
