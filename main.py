#!/usr/bin/env python3
"""
Radionica auth -- register accounts, log in, and rotate tokens from a shell.

Usage:
  python main.py register alice
  python main.py login alice
  python main.py refresh <refresh-token>
  python main.py whoami <token>

Environment variables (see core/config.py for the full list):
  JWT_SECRET              Signing key, at least 32 characters. Required unless DEBUG=true.
  TOKEN_DURATION          Access token lifetime, e.g. 15m (default).
  REFRESH_TOKEN_DURATION  Refresh token lifetime, e.g. 168h (default).
  DATABASE_URL            SQLAlchemy URL of the user database.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from dataclasses import asdict

from pydantic import ValidationError as SettingsError

from auth.errors import AuthError, CredentialError, TokenError, ValidationError
from auth.service import build_auth_service
from auth.store import UserStore
from core.config import get_settings


def _read_password(args: argparse.Namespace) -> str:
    if args.password is not None:
        return args.password
    return getpass.getpass("Password: ")


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, default=str))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="radionica-auth",
        description="Account registration, login and token rotation.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py register alice --password s3cret
  python main.py login alice
  python main.py refresh eyJhbGciOi...
  JWT_SECRET=... python main.py whoami eyJhbGciOi...
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_register = sub.add_parser("register", help="Create a new account")
    p_register.add_argument("username")
    p_register.add_argument("--password", help="Password (prompted for when omitted)")

    p_login = sub.add_parser("login", help="Log in and print a token pair")
    p_login.add_argument("username")
    p_login.add_argument("--password", help="Password (prompted for when omitted)")

    p_refresh = sub.add_parser("refresh", help="Exchange a refresh token for a new pair")
    p_refresh.add_argument("refresh_token", metavar="REFRESH_TOKEN")

    p_whoami = sub.add_parser("whoami", help="Validate a token and show its user")
    p_whoami.add_argument("token", metavar="TOKEN")
    return parser


def run(argv: list[str] | None = None) -> int:
    """Parse argv, execute one command, and return the process exit status."""
    args = _build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except SettingsError as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    store = UserStore(settings.database_url)
    service = build_auth_service(settings, store)
    try:
        if args.command == "register":
            user = service.register(args.username, _read_password(args))
            _print_json(asdict(user))
        elif args.command == "login":
            pair = service.login(args.username, _read_password(args))
            _print_json(asdict(pair))
        elif args.command == "refresh":
            pair = service.refresh_token(args.refresh_token)
            _print_json(asdict(pair))
        elif args.command == "whoami":
            try:
                user_id = service.validator.subject_of(args.token, service.clock())
            except TokenError:
                raise CredentialError() from None
            user = store.get_by_id(user_id)
            if user is None:
                raise CredentialError()
            _print_json(asdict(user.public()))
    except ValidationError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 2
    except AuthError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        store.close()
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
