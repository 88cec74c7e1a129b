from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"


def hash_password(password: str, *, rounds: Optional[int] = None) -> str:
    """Salted, adaptive hash. The salt and round count are embedded in the result."""
    if not password:
        raise ValueError("password_blank")
    if rounds is None:
        return _pwd.hash(password)
    return _pwd.handler("pbkdf2_sha256").using(rounds=max(1, int(rounds))).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except Exception:
        return False


def create_session_cookie(
    *,
    secret: str,
    session_id: str,
    expires_seconds: Optional[int],
) -> str:
    """Sign an opaque reference to a server-side session.

    expires_seconds=None omits the `exp` claim; the server-side row is then the
    only expiry authority (used for rolling sessions).
    """
    if not secret:
        raise ValueError("session_secret_blank")
    if not session_id:
        raise ValueError("session_id_blank")

    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sid": session_id,
        "iat": int(now.timestamp()),
    }
    if expires_seconds is not None:
        exp = now + timedelta(seconds=max(1, int(expires_seconds)))
        payload["exp"] = int(exp.timestamp())
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def read_session_cookie(*, token: str, secret: str) -> str:
    """Return the session id from a signed cookie value.

    Raises jwt.InvalidTokenError (incl. ExpiredSignatureError) or ValueError.
    """
    if not token:
        raise ValueError("token_blank")
    if not secret:
        raise ValueError("session_secret_blank")
    payload = jwt.decode(token, secret, algorithms=[_JWT_ALG])
    sid = payload.get("sid")
    if not sid:
        raise ValueError("token_missing_sid")
    return str(sid)
