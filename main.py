#!/usr/bin/env python3
"""
Postboard -- posts and comments API with role and ownership based access control.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000
  python main.py serve --reload
  python main.py create-admin --email admin@example.com --password 'S3cure-pass' \\
      --first-name Ada --last-name Admin

Environment variables (or .env):
  SECRET_KEY     Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL. Defaults to a SQLite file next to this script.
  DEBUG          true enables an auto-generated SECRET_KEY and error details.

create-admin exists because POST /api/v1/auth/admin itself requires an admin:
the first administrator has to be created out of band.
"""

import argparse
import getpass
import re
import sys

from sqlalchemy.exc import IntegrityError

from api.models import EMAIL_PATTERN
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import hash_password, is_strong_password
from core.config import get_settings
from core.database import create_db_engine


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _create_admin(args: argparse.Namespace) -> int:
    settings = get_settings()
    if not re.match(EMAIL_PATTERN, args.email):
        print(f"  [!] '{args.email}' is not a valid email address.")
        return 1
    password = args.password or getpass.getpass("Admin password: ")
    if not is_strong_password(password):
        print("  [!] Password needs 8+ characters with a lowercase letter, an uppercase letter and a digit.")
        return 1

    engine = create_db_engine(settings.database_url)
    try:
        store = UserStore(engine)
        admin = User(
            email=args.email,
            hashed_password=hash_password(password, settings.bcrypt_rounds),
            first_name=args.first_name,
            last_name=args.last_name,
            country="N/A",
            role=Role.ADMIN,
        )
        try:
            user_id = store.create_user(admin)
        except IntegrityError:
            print(f"  [!] An account with email '{args.email}' already exists.")
            return 1
    finally:
        engine.dispose()

    print(f"Admin account created: {args.email} (id {user_id})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="postboard",
        description="Postboard -- posts and comments API with access control.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the API server with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    serve.set_defaults(func=_serve)

    admin = sub.add_parser("create-admin", help="Create an administrator account.")
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", help="Prompted for if omitted.")
    admin.add_argument("--first-name", required=True)
    admin.add_argument("--last-name", required=True)
    admin.set_defaults(func=_create_admin)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
