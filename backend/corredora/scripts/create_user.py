"""
Create an account (e.g. the first admin or the demo user). Run from backend/:
  python -m corredora.scripts.create_user EMAIL NAME PASSWORD [role]
Example:
  python -m corredora.scripts.create_user demo@seguros.test "Admin Demo" Demo1234 admin
"""
import argparse
import asyncio
import sys

from corredora.config.config import get_settings
from corredora.core.errors import Conflict, Unavailable
from corredora.core.logging import setup_logging
from corredora.db.session import Database
from corredora.schemas.auth import Role
from corredora.services.accounts import AccountStore


async def create_user(url: str, email: str, name: str, password: str, role: Role, timeout: float = 5.0) -> str:
    """Create the account and return its id. Raises Conflict on duplicate email."""
    database = Database(url, timeout=timeout)
    try:
        await database.create_all()
        async with database.session() as db:
            user = await AccountStore(db, timeout=timeout).create(
                name=name, email=email, password=password, role=role
            )
            return user.id
    finally:
        await database.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a Corredora account.")
    parser.add_argument("email")
    parser.add_argument("name")
    parser.add_argument("password")
    parser.add_argument("role", nargs="?", default=Role.CONSULTA.value, choices=[r.value for r in Role])
    args = parser.parse_args(argv)

    email = args.email.strip()
    name = args.name.strip()
    if not email or not name:
        print("Email and name must not be empty.", file=sys.stderr)
        return 1
    if not args.password:
        print("Password must not be empty.", file=sys.stderr)
        return 1

    setup_logging()
    settings = get_settings()
    try:
        user_id = asyncio.run(
            create_user(
                settings.DATABASE_URL_ASYNC,
                email,
                name,
                args.password,
                Role(args.role),
                timeout=settings.STORE_TIMEOUT_SECONDS,
            )
        )
    except Conflict:
        print(f"Account '{email}' already exists.", file=sys.stderr)
        return 1
    except Unavailable:
        print("Database unavailable.", file=sys.stderr)
        return 1
    print(f"Created account '{email}' with role '{args.role}' (id {user_id}).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
