"""Server-side session store.

Sessions live in the `sessions` table so they survive process restarts. The
browser only ever holds a signed reference to `session_id` (see
security.create_session_cookie).

Expiry is absolute: `expires_at` is set to now + ttl on every write
(create/touch). Nothing slides unless a caller explicitly touches.
"""

from __future__ import annotations

import secrets
from typing import Any, Optional

from membership.models import Session, SessionGrant
from membership.util.time import iso_after, utcnow_iso


def _debug(msg: str) -> None:
    print(f"[sessions] {msg}")


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def _row_to_session(row: Any) -> Session:
    return Session(
        session_id=str(row["session_id"]),
        authenticated=bool(int(row["authenticated"] or 0)),
        name=str(row["name"]),
        username=str(row["username"]),
        is_admin=bool(int(row["is_admin"] or 0)),
        created_at=str(row["created_at"]),
        expires_at=str(row["expires_at"]),
    )


def create(
    conn: Any,
    grant: SessionGrant,
    ttl_seconds: int,
    *,
    session_id: Optional[str] = None,
) -> Session:
    sid = session_id or new_session_id()
    now = utcnow_iso()
    expires_at = iso_after(ttl_seconds)
    # Last write wins if the same id is written twice.
    conn.execute(
        """
        INSERT INTO sessions (session_id, authenticated, name, username, is_admin, created_at, updated_at, expires_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(session_id) DO UPDATE SET
            authenticated=excluded.authenticated,
            name=excluded.name,
            username=excluded.username,
            is_admin=excluded.is_admin,
            updated_at=excluded.updated_at,
            expires_at=excluded.expires_at
        """,
        (
            sid,
            1 if grant.authenticated else 0,
            grant.name,
            grant.username,
            1 if grant.admin else 0,
            now,
            now,
            expires_at,
        ),
    )
    return Session(
        session_id=sid,
        authenticated=grant.authenticated,
        name=grant.name,
        username=grant.username,
        is_admin=grant.admin,
        created_at=now,
        expires_at=expires_at,
    )


def get(conn: Any, session_id: Optional[str]) -> Optional[Session]:
    """Return the live session, or None when absent or expired.

    Expired rows are deleted on sight.
    """
    if not session_id:
        return None
    row = conn.execute(
        "SELECT * FROM sessions WHERE session_id=?",
        (session_id,),
    ).fetchone()
    if row is None:
        return None
    if str(row["expires_at"]) <= utcnow_iso():
        conn.execute("DELETE FROM sessions WHERE session_id=?", (session_id,))
        _debug("Expired session removed")
        return None
    return _row_to_session(row)


def destroy(conn: Any, session_id: Optional[str]) -> None:
    """Delete a session (idempotent)."""
    if not session_id:
        return
    conn.execute("DELETE FROM sessions WHERE session_id=?", (session_id,))


def touch(conn: Any, session_id: Optional[str], ttl_seconds: int) -> Optional[Session]:
    """Extend a live session to now + ttl. Returns None if it is already gone."""
    if get(conn, session_id) is None:
        return None
    conn.execute(
        "UPDATE sessions SET updated_at=?, expires_at=? WHERE session_id=?",
        (utcnow_iso(), iso_after(ttl_seconds), session_id),
    )
    return get(conn, session_id)


def purge_expired(conn: Any) -> int:
    cur = conn.execute("DELETE FROM sessions WHERE expires_at<=?", (utcnow_iso(),))
    n = int(cur.rowcount or 0)
    if n:
        _debug(f"Purged {n} expired sessions")
    return n
