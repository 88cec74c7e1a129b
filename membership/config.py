import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _env_list(name: str, default: str) -> Tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(p.strip() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide SESSION_SECRET via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set MEMBERSHIP_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: MEMBERSHIP_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("MEMBERSHIP_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("MEMBERSHIP_DB_PATH", "./membership.sqlite")
    )

    # -----------------
    # Sessions
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set SESSION_SECRET to a strong random value.
    SESSION_SECRET: str = os.environ.get("SESSION_SECRET", "dev_change_me")

    # Absolute lifetime from the last write (login, or every request when rolling).
    SESSION_TTL_SECONDS: int = int(os.environ.get("SESSION_TTL_SECONDS", "600"))  # 10 minutes
    SESSION_ROLLING: bool = _env_bool("SESSION_ROLLING", False) is True

    SESSION_COOKIE_NAME: str = os.environ.get("SESSION_COOKIE_NAME", "membership_session")
    SESSION_COOKIE_PATH: str = os.environ.get("SESSION_COOKIE_PATH", "/")
    SESSION_COOKIE_DOMAIN: str | None = (os.environ.get("SESSION_COOKIE_DOMAIN") or "").strip() or None
    SESSION_COOKIE_SAMESITE: str = os.environ.get("SESSION_COOKIE_SAMESITE", "lax")  # lax|strict|none
    SESSION_COOKIE_SECURE: bool = _env_bool("SESSION_COOKIE_SECURE", False) is True

    # -----------------
    # Passwords
    # -----------------
    # pbkdf2_sha256 iteration count. Deployment-time constant; existing hashes keep their own.
    PASSWORD_HASH_ROUNDS: int = int(os.environ.get("PASSWORD_HASH_ROUNDS", "29000"))

    # Bootstrap first admin user if users table is empty.
    # Disabled unless both username and password are set.
    ADMIN_BOOTSTRAP_NAME: str = os.environ.get("ADMIN_BOOTSTRAP_NAME", "admin")
    ADMIN_BOOTSTRAP_USERNAME: str = os.environ.get("ADMIN_BOOTSTRAP_USERNAME", "")
    ADMIN_BOOTSTRAP_PASSWORD: str = os.environ.get("ADMIN_BOOTSTRAP_PASSWORD", "")

    # -----------------
    # Members area
    # -----------------
    GALLERY_IMAGES: Tuple[str, ...] = field(
        default_factory=lambda: _env_list("GALLERY_IMAGES", "1.jpg,2.jpg,3.jpg")
    )


def load_config() -> Config:
    return Config()
