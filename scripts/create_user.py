"""Create a user in the DB.

Usage:
  python scripts/create_user.py --name Alice --username alice@example.com --password '...' [--admin]

NOTE: This is intended for local/dev and for creating the first admin.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from membership.auth.crud import insert_user
from membership.auth.security import hash_password
from membership.auth.validation import validate_signup
from membership.config import load_config
from membership.db import connect, init_db
from membership.errors import AuthError


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--name", required=True)
    ap.add_argument("--username", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--admin", action="store_true")
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    try:
        form = validate_signup({"name": args.name, "username": args.username, "password": args.password})
        with connect(cfg.DB_DSN) as conn:
            u = insert_user(
                conn,
                name=form.name,
                username=form.username,
                password_hash=hash_password(form.password, rounds=cfg.PASSWORD_HASH_ROUNDS),
                admin=args.admin,
            )
    except AuthError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print("Created user:")
    print(u.public())


if __name__ == "__main__":
    main()
