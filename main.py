#!/usr/bin/env python3
"""
User auth service -- admin command line.

Usage:
  python main.py create-user --email admin@example.com --name "Site Admin" --role super_admin
  python main.py create-user --email ops@example.com --name Ops --role admin --department 2
  python main.py create-department --name Engineering

The password is read interactively (never from argv, so it stays out of shell
history) unless USERAUTH_PASSWORD is set for scripted bootstrap.

The same registration rules as POST /api/v1/auth/register apply: email
format, password strength, role catalog, unique email.

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the user store (default: auth/userauth.db)
  SECRET_KEY     Required unless DEBUG=true; not used for user creation but
                 validated by the shared settings loader.
"""

import argparse
import getpass
import os
import sys

from sqlalchemy.exc import IntegrityError

from auth.errors import AuthServiceError
from auth.models import RegistrationRequest, Role
from auth.service import Authenticator
from auth.store import UserStore
from auth.tokens import TokenConfig
from core.config import get_settings


def _read_password() -> str:
    env_password = os.environ.get("USERAUTH_PASSWORD")
    if env_password:
        return env_password
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return first


def _create_user(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = UserStore(settings.database_url)
    try:
        authenticator = Authenticator(store, TokenConfig.from_settings(settings), bcrypt_rounds=settings.bcrypt_rounds)
        user = authenticator.register(
            RegistrationRequest(
                email=args.email,
                name=args.name,
                password=_read_password(),
                role=args.role,
                department_id=args.department,
            )
        )
    except AuthServiceError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        store.close()
    print(f"  Created user {user.id} <{user.email}> role={user.role.value}")
    return 0


def _create_department(args: argparse.Namespace) -> int:
    store = UserStore(get_settings().database_url)
    try:
        dept_id = store.create_department(args.name.strip())
    except IntegrityError:
        print(f"  [!] Department '{args.name}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created department {dept_id} '{args.name.strip()}'")
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="User auth service administration")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create an account (e.g. the first super_admin)")
    create.add_argument("--email", required=True)
    create.add_argument("--name", required=True)
    create.add_argument("--role", default=Role.EMPLOYEE.value, choices=[r.value for r in Role])
    create.add_argument("--department", type=int, default=None, help="Existing department ID")

    dept = sub.add_parser("create-department", help="Create a department users can be assigned to")
    dept.add_argument("--name", required=True)

    args = parser.parse_args(argv)
    if args.command == "create-user":
        sys.exit(_create_user(args))
    if args.command == "create-department":
        sys.exit(_create_department(args))


if __name__ == "__main__":
    main()
