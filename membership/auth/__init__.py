"""Authentication / authorization helpers.

Auth is intentionally lightweight:

- Users table (name, email username, password hash, admin flag)
- Server-side sessions, referenced by a signed httpOnly cookie

Route guards (`require_login`, `require_admin`) are FastAPI dependencies that
redirect instead of raising 401/403, since every client is a browser.
"""

from .deps import RedirectRequired, get_session, require_admin, require_login
from .crud import bootstrap_admin_if_needed

__all__ = [
    "RedirectRequired",
    "get_session",
    "require_admin",
    "require_login",
    "bootstrap_admin_if_needed",
]
