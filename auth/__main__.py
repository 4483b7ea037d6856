"""Command line interface for account administration.

Usage:
    python -m auth create-admin --email admin@example.com [--first-name A] [--last-name B]

The password is read from the prompt (or MAPIT_ADMIN_PASSWORD when set).
"""
import argparse
import asyncio
import getpass
import logging
import os
import sys

from database import init_db, close as db_close
from . import AdminManager, AuthError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="python -m auth", description="MapIt account administration")
    commands = parser.add_subparsers(dest="command", required=True)

    create_admin = commands.add_parser("create-admin", help="Create an admin account")
    create_admin.add_argument("--email", required=True)
    create_admin.add_argument("--first-name", default=None)
    create_admin.add_argument("--last-name", default=None)

    return parser.parse_args(argv)

def read_password() -> str:
    password = os.environ.get("MAPIT_ADMIN_PASSWORD")
    if password:
        return password

    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        raise SystemExit("Passwords do not match")
    return password

async def create_admin(args: argparse.Namespace, password: str) -> int:
    pool = await init_db()
    try:
        admin = await AdminManager(pool).create_admin(
            email=args.email,
            password=password,
            first_name=args.first_name,
            last_name=args.last_name
        )
    except AuthError as e:
        logger.error(f"Could not create admin: {e}")
        return 1
    finally:
        await db_close(pool)

    print(f"Created admin {admin['admin_id']} ({admin['email']})")
    return 0

def main(argv=None) -> int:
    args = parse_args(argv)
    if args.command == "create-admin":
        return asyncio.run(create_admin(args, read_password()))
    return 2

if __name__ == "__main__":
    sys.exit(main())
