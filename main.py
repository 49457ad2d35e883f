#!/usr/bin/env python3
"""
Watch Tracker -- admin command line.

Operates directly on the configured database; the API server does not need to
be running.

Usage:
  python main.py create-user alice
  python main.py reset-token alice
  python main.py purge-revoked

Environment variables:
  WATCH_TRACKER_DATABASE_URL   Database to operate on (default sqlite:///./watch-tracker.db)
  WATCH_TRACKER_SECRET_KEY     Must match the API server's key for reset tokens to verify.
"""

import argparse
import getpass
import sys
from typing import Callable, Optional

from auth.commands import RegisterUserCommand, RegisterUserHandler
from auth.revocation import RevocationStore
from auth.store import UserStore
from auth.tokens import AuthenticationService
from core.config import Settings, get_settings
from core.database import Database
from core.errors import AppError


def _create_user(args: argparse.Namespace, settings: Settings, db: Database, prompt: Callable[[str], str]) -> int:
    """Register a user, reading the password without echo.

    Goes through RegisterUserHandler so the same username and password rules
    apply as for POST /api/auth/register.
    """
    password = prompt("Password: ")
    if password != prompt("Repeat password: "):
        print("  [!] Passwords do not match.")
        return 1
    handler = RegisterUserHandler(UserStore(db.engine), settings.bcrypt_rounds)
    try:
        user = handler.handle(RegisterUserCommand.create(args.username, password))
    except AppError as e:
        print(f"  [!] {e.message}")
        return 1
    print(f"  Created user '{user.username}' (id {user.id}).")
    return 0


def _reset_token(args: argparse.Namespace, settings: Settings, db: Database, prompt: Callable[[str], str]) -> int:
    """Print a one-hour password reset token for POST /api/auth/reset-password."""
    users = UserStore(db.engine)
    user = users.find_by_username(args.username)
    if user is None:
        print(f"  [!] No user named '{args.username}'.")
        return 1
    auth = AuthenticationService(settings, users, RevocationStore(db.engine))
    print(auth.generate_password_reset_token(user))
    return 0


def _purge_revoked(args: argparse.Namespace, settings: Settings, db: Database, prompt: Callable[[str], str]) -> int:
    """Delete revocation entries whose tokens have expired on their own."""
    auth = AuthenticationService(settings, UserStore(db.engine), RevocationStore(db.engine))
    removed = auth.purge_expired_revocations()
    print(f"  Removed {removed} expired revocation entr{'y' if removed == 1 else 'ies'}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="watch-tracker",
        description="Administrative tasks for the Watch Tracker API database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user alice
  python main.py reset-token alice
  WATCH_TRACKER_DATABASE_URL=sqlite:///./prod.db python main.py purge-revoked
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Create an account (prompts for the password)")
    create.add_argument("username", help="3-30 letters, digits or underscores")
    create.set_defaults(func=_create_user)

    reset = sub.add_parser("reset-token", help="Print a password reset token for a user")
    reset.add_argument("username")
    reset.set_defaults(func=_reset_token)

    purge = sub.add_parser("purge-revoked", help="Delete expired revoked-token entries")
    purge.set_defaults(func=_purge_revoked)

    return parser


def main(
    argv: Optional[list[str]] = None,
    settings: Optional[Settings] = None,
    prompt: Callable[[str], str] = getpass.getpass,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    settings = settings or get_settings()
    db = Database(settings.database_url)
    try:
        return args.func(args, settings, db, prompt)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
