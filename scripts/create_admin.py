"""Create an additional admin in the SQLite DB and print its TOTP enrollment.

Usage:
  python scripts/create_admin.py --adminname alice --uid 2001 --email alice@example.org --password '...'

NOTE: This is intended for local/dev. In a running deployment use POST /auth/admin/create.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from legislate.auth.flows import create_admin_account
from legislate.config import load_config
from legislate.db import connect, init_db
from legislate.errors import LegislateError
from legislate.models import public_user


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--adminname", required=True)
    ap.add_argument("--uid", required=True)
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_PATH)

    try:
        with connect(cfg.DB_PATH) as conn:
            admin, enrollment = create_admin_account(
                conn,
                cfg,
                adminname=args.adminname,
                uid=args.uid,
                email=args.email,
                password=args.password,
            )
    except LegislateError as e:
        # e.g. password_too_short, adminname_exists
        raise SystemExit(f"error: {e.detail}")

    print("Created admin:")
    print(public_user(admin))
    print("TOTP secret (add to an authenticator app):")
    print(f"  base32:  {enrollment.base32}")
    print(f"  otpauth: {enrollment.otpauth_url}")


if __name__ == "__main__":
    main()
