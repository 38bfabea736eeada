"""Bootstrap script: create a platform admin account.

Admins cannot self-register through the API; this is the only way in.

Usage:
    python scripts/create_admin.py --username admin --email admin@example.com \
        --first-name Site --last-name Admin

The password is read from ADMIN_PASSWORD or prompted for.
"""

import argparse
import asyncio
import getpass
import logging
import os
import sys

# Ensure src is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s")
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an admin account")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    return parser.parse_args(argv)


async def create_admin(args: argparse.Namespace, password: str) -> int:
    from investor_platform.domain.errors import PlatformError
    from investor_platform.infra.database import async_session, close_db, init_db
    from investor_platform.services.account_service import AccountService

    await init_db()

    try:
        async with async_session() as session:
            admin = await AccountService(session).create_admin(
                {
                    "username": args.username,
                    "email": args.email,
                    "password": password,
                    "first_name": args.first_name,
                    "last_name": args.last_name,
                }
            )
    except PlatformError as exc:
        logger.error("Could not create admin: %s", exc.detail)
        return 1
    finally:
        await close_db()

    logger.info("Admin %s created with id %s", admin.username, admin.id)
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    password = os.environ.get("ADMIN_PASSWORD") or getpass.getpass("Admin password: ")
    return asyncio.run(create_admin(args, password))


if __name__ == "__main__":
    sys.exit(main())
