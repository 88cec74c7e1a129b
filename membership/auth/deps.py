from __future__ import annotations

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request

from membership.config import Config
from membership.db import connect
from membership.models import Session

from . import sessions as session_store
from .security import read_session_cookie


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


class RedirectRequired(Exception):
    """Raised by guards; the app turns it into a 302 to `location`."""

    def __init__(self, location: str):
        self.location = location
        super().__init__(location)


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def session_id_from_request(request: Request, cfg: Config) -> Optional[str]:
    """Session id from the signed cookie, or None if missing/forged/expired."""
    cookie_name = str(getattr(cfg, "SESSION_COOKIE_NAME", "membership_session") or "membership_session")
    token = request.cookies.get(cookie_name)
    if not token:
        return None
    try:
        return read_session_cookie(token=token, secret=cfg.SESSION_SECRET)
    except jwt.ExpiredSignatureError:
        return None
    except (jwt.InvalidTokenError, ValueError):
        _debug("Rejected session cookie with bad signature")
        return None


def get_session(request: Request, cfg: Config = Depends(get_config)) -> Optional[Session]:
    """Resolve the caller's live session (None = anonymous).

    With SESSION_ROLLING enabled, every resolved session is extended by the TTL.
    """
    sid = session_id_from_request(request, cfg)
    if not sid:
        return None
    with connect(cfg.DB_DSN) as conn:
        if cfg.SESSION_ROLLING:
            return session_store.touch(conn, sid, cfg.SESSION_TTL_SECONDS)
        return session_store.get(conn, sid)


def require_login(session: Optional[Session] = Depends(get_session)) -> Session:
    if session is None or not session.authenticated:
        _debug("User not authenticated")
        raise RedirectRequired("/login")
    return session


def require_admin(session: Session = Depends(require_login)) -> Session:
    if not session.is_admin:
        _debug(f"User not admin: {session.username}")
        raise RedirectRequired("/members?error=admin_required")
    return session
