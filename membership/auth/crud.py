from __future__ import annotations

from typing import Any, List, Optional

from membership.config import Config
from membership.db import connect
from membership.errors import DuplicateUser, UserNotFound
from membership.models import User
from membership.util.time import utcnow_iso

from .security import hash_password


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


def _row_to_user(row: Any) -> User:
    return User(
        user_id=int(row["user_id"]),
        name=str(row["name"]),
        username=str(row["username"]),
        password_hash=str(row["password_hash"]),
        admin=bool(int(row["admin"] or 0)),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


def find_by_username(conn: Any, username: str) -> Optional[User]:
    u = normalize_username(username)
    if not u:
        return None
    row = conn.execute(
        "SELECT * FROM users WHERE username=?",
        (u,),
    ).fetchone()
    return _row_to_user(row) if row is not None else None


def list_users(conn: Any) -> List[User]:
    rows = conn.execute("SELECT * FROM users ORDER BY user_id").fetchall()
    return [_row_to_user(r) for r in rows]


def count_users(conn: Any) -> int:
    row = conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()
    return int(row["n"])


def insert_user(
    conn: Any,
    *,
    name: str,
    username: str,
    password_hash: str,
    admin: bool = False,
) -> User:
    """Insert a new user row.

    Uniqueness is decided by the UNIQUE index, not by a prior lookup:
    `ON CONFLICT(username) DO NOTHING` works on both SQLite and Postgres, so the
    loser of a concurrent signup race gets DuplicateUser rather than an engine error.
    """
    u = normalize_username(username)
    if not u:
        raise ValueError("username_blank")

    now = utcnow_iso()
    inserted = conn.execute(
        """
        INSERT INTO users (name, username, password_hash, admin, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(username) DO NOTHING
        RETURNING user_id
        """,
        (name, u, password_hash, 1 if admin else 0, now, now),
    ).fetchone()
    if inserted is None:
        raise DuplicateUser()

    user = find_by_username(conn, u)
    assert user is not None
    return user


def update_admin_flag(conn: Any, username: str, admin: bool) -> User:
    user = find_by_username(conn, username)
    if user is None:
        raise UserNotFound()
    # Demoting a non-admin (or promoting an admin) leaves the row untouched.
    if user.admin == bool(admin):
        return user

    conn.execute(
        "UPDATE users SET admin=?, updated_at=? WHERE user_id=?",
        (1 if admin else 0, utcnow_iso(), user.user_id),
    )
    updated = find_by_username(conn, user.username)
    assert updated is not None
    return updated


def bootstrap_admin_if_needed(cfg: Config) -> Optional[User]:
    """Create the first admin user if the users table is empty.

    Controlled via environment variables so a new deployment has a deterministic way in.

    - ADMIN_BOOTSTRAP_NAME (default: admin)
    - ADMIN_BOOTSTRAP_USERNAME (email, no default)
    - ADMIN_BOOTSTRAP_PASSWORD (no default)

    This only runs when there are 0 rows in `users`.
    """

    username = normalize_username(getattr(cfg, "ADMIN_BOOTSTRAP_USERNAME", "") or "")
    password = getattr(cfg, "ADMIN_BOOTSTRAP_PASSWORD", "") or ""
    name = (getattr(cfg, "ADMIN_BOOTSTRAP_NAME", "") or "admin").strip()

    # Unset means "don't create anything".
    if not username or not password:
        return None

    with connect(cfg.DB_DSN) as conn:
        if count_users(conn) > 0:
            return None

        user = insert_user(
            conn,
            name=name,
            username=username,
            password_hash=hash_password(password, rounds=cfg.PASSWORD_HASH_ROUNDS),
            admin=True,
        )
        _debug(f"Bootstrapped initial admin user: username={user.username}")
        return user
