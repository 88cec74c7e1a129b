import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from membership.auth import sessions
from membership.config import load_config
from membership.db import connect, init_db


def main() -> None:
    cfg = load_config()
    init_db(cfg.DB_DSN)
    with connect(cfg.DB_DSN) as conn:
        n = sessions.purge_expired(conn)
    print(f"Purged {n} expired sessions")


if __name__ == "__main__":
    main()
