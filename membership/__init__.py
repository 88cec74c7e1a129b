"""Membership site - Backend.

A small server-rendered site:
- Visitors sign up and log in (email + password).
- Members see a gallery; admins promote/demote other users.

Core concepts:
- One `users` table keyed by a unique, normalized username (email).
- Server-side sessions referenced by a signed, httpOnly cookie.

See SPEC_FULL.md for the full behavior.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
