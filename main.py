#!/usr/bin/env python3
"""
Libris -- management commands.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py create-user admin@example.com --name "Site Admin" --role admin
  python main.py create-user reader@example.com --name Reader --password-stdin < pw.txt

create-user prompts for the password (twice) unless --password-stdin is given.

Environment variables:
  SECRET_KEY    Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL  Optional SQLAlchemy URL shared by the account and book stores.
"""

import argparse
import getpass
import sys

from auth.credentials import register
from auth.errors import AppError
from auth.models import ManualRegistration, Role
from auth.store import AccountStore
from core.config import get_settings

_MIN_PASSWORD = 8


def _read_password(from_stdin: bool) -> str:
    if from_stdin:
        return sys.stdin.readline().rstrip("\n")
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Confirm password: ")
    if first != second:
        raise SystemExit("Passwords do not match.")
    return first


def _create_user(args: argparse.Namespace) -> int:
    password = _read_password(args.password_stdin)
    if len(password) < _MIN_PASSWORD:
        print(f"  [!] Password must be at least {_MIN_PASSWORD} characters.", file=sys.stderr)
        return 1

    settings = get_settings()
    store = AccountStore(settings.database_url) if settings.database_url else AccountStore()
    try:
        account = register(
            store,
            ManualRegistration(
                email=args.email,
                password=password,
                name=args.name or args.email.split("@", 1)[0],
                role=args.role,
            ),
        )
    except AppError as exc:
        print(f"  [!] {exc.message}", file=sys.stderr)
        return 1
    finally:
        store.close()

    print(f"  Created {account.role} account {account.email} (id={account.id})")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="libris", description="Libris API management commands.")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a password account.")
    create.add_argument("email")
    create.add_argument("--name", default=None, help="Display name (defaults to the email local part).")
    create.add_argument("--role", choices=[r.value for r in Role], default=Role.user.value)
    create.add_argument("--password-stdin", action="store_true", help="Read the password from stdin.")
    create.set_defaults(func=_create_user)

    serve = sub.add_parser("serve", help="Run the API with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8080)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(func=_serve)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
