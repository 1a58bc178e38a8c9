#!/usr/bin/env python3
"""
Storefront server entry point.

Serves the API, applies database migrations, or bootstraps a local account.
"""

import argparse
import getpass
import logging
import os
import sys
from typing import List, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)


def migrate() -> int:
    from shop.db.config import load_db_config
    from shop.db.migrate import migrate as apply_pending

    dsn = load_db_config().dsn
    if not dsn:
        print("Postgres not configured (set POSTGRES_DSN or POSTGRES_* env vars).")
        return 2
    versions = apply_pending(dsn)
    if versions:
        print(f"Applied {len(versions)} migration(s): {', '.join(versions)}")
    else:
        print("No pending migrations.")
    return 0


def create_user(email: str, name: Optional[str]) -> int:
    """Create a local account; the password comes from SHOP_USER_PASSWORD or a prompt."""
    from shop.auth.local import hash_password
    from shop.db.config import load_db_config
    from shop.db.users import PostgresUserStore
    from shop.exceptions import EmailTakenError

    dsn = load_db_config().dsn
    if not dsn:
        print("Postgres not configured (set POSTGRES_DSN or POSTGRES_* env vars).")
        return 2

    password = os.getenv("SHOP_USER_PASSWORD") or getpass.getpass(f"Password for {email}: ")
    if not password:
        print("Password must not be empty.")
        return 2

    try:
        user = PostgresUserStore(dsn).create_user(email=email, password_hash=hash_password(password), name=name)
    except EmailTakenError:
        print(f"A user with email {email} already exists.")
        return 1
    print(f"Created user id={user.id} email={user.email}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Storefront API server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the API server
  python main.py --serve --port 1337

  # Apply pending database migrations
  python main.py --migrate

  # Create a local account (prompts for the password)
  python main.py --create-user admin@example.com --name Admin
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API server")
    parser.add_argument("--migrate", action="store_true", help="Apply pending database migrations and exit")
    parser.add_argument("--create-user", metavar="EMAIL", help="Create a local user account and exit")
    parser.add_argument("--name", help="Display name for --create-user")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=1337, help="Server listen port (default: 1337)")

    args = parser.parse_args(argv)

    if args.migrate:
        return migrate()

    if args.create_user:
        return create_user(args.create_user, args.name)

    if args.serve:
        from shop.api.app import run

        run(host=args.host, port=args.port)
        return 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
