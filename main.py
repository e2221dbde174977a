#!/usr/bin/env python3
"""
Gatehouse -- Password and OAuth authentication with role-based user management.

Usage:
  python main.py create-superadmin --name "Ada" --email ada@example.com
  python main.py list-users
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload

Sign-up always creates role User, so the first SuperAdmin has to be created
out of band. create-superadmin writes straight to the database configured by
DATABASE_URL; after that, every other role is granted through the API.

Environment variables:
  SECRET_KEY     Token signing key (32+ chars). Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL. Defaults to a SQLite file next to this script.
"""

import argparse
import getpass
import sys
import uuid

from auth.models import Role, User, UserStatus
from auth.passwords import hash_password
from auth.service import validate_new_account
from auth.store import UserStore
from core.config import get_settings
from core.errors import AppError


def _open_store() -> UserStore:
    return UserStore(get_settings().database_url)


def _prompt_password() -> str:
    password = getpass.getpass("  Password: ")
    if password != getpass.getpass("  Confirm password: "):
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return password


def create_superadmin(args: argparse.Namespace) -> int:
    """Create a SuperAdmin account directly in the user store."""
    password = args.password or _prompt_password()
    store = _open_store()
    try:
        validate_new_account(args.name, args.email, password)
        user = store.create(
            User(
                id=str(uuid.uuid4()),
                name=args.name.strip(),
                email=args.email,
                phone=args.phone,
                password_hash=hash_password(password),
                role=Role.SUPER_ADMIN,
                status=UserStatus.ACTIVE,
            )
        )
    except AppError as e:
        print(f"  [!] {e.message}")
        return 1
    finally:
        store.close()
    print(f"  SuperAdmin created: {user.email} ({user.id})")
    return 0


def list_users(args: argparse.Namespace) -> int:
    store = _open_store()
    try:
        users = store.find_all()
    except AppError as e:
        print(f"  [!] {e.message}")
        return 1
    finally:
        store.close()

    if not users:
        print("  No users yet. Run 'python main.py create-superadmin' to add the first account.")
        return 0

    print(f"\n  {'EMAIL':<36} {'ROLE':<11} {'STATUS':<10} LINKED")
    print("  " + "─" * 70)
    for user in users:
        linked = ", ".join(p for p, v in (("github", user.github_id), ("google", user.google_id)) if v) or "-"
        print(f"  {user.email:<36} {user.role.value:<11} {user.status.value:<10} {linked}")
    print(f"\n  {len(users)} user(s).\n")
    return 0


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="gatehouse",
        description="Authentication and user management service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-superadmin --name "Ada Lovelace" --email ada@example.com
  python main.py list-users
  python main.py serve --port 8080
        """,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_admin = subparsers.add_parser("create-superadmin", help="Create a SuperAdmin account")
    p_admin.add_argument("--name", required=True, help="Display name")
    p_admin.add_argument("--email", required=True, help="Login email")
    p_admin.add_argument("--phone", default=None, help="Optional phone number")
    p_admin.add_argument(
        "--password",
        default=None,
        help="Password (prompted for when omitted; prefer the prompt, argv is visible to other users)",
    )
    p_admin.set_defaults(func=create_superadmin)

    p_list = subparsers.add_parser("list-users", help="List every account with role and status")
    p_list.set_defaults(func=list_users)

    p_serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    p_serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    p_serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    p_serve.set_defaults(func=serve)

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        return
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
