"""Seed the database with a demo user.

Usage:
    python -m browsercron.seed [--email demo@example.com] [--name "Demo User"]
"""

import argparse
import asyncio
import sys
from uuid import uuid4

from dotenv import load_dotenv

from browsercron.config import get_settings
from browsercron.database import close_database, init_database, run_migrations
from browsercron.services.logging_service import configure_logging, get_logger
from browsercron.services.user_service import UserService


async def seed(email: str, name: str) -> int:
    logger = get_logger("seed")
    await init_database()
    try:
        await run_migrations()
        user = await UserService().upsert(uuid4(), email=email, name=name)
        logger.info("demo_user_created", user_id=str(user.id), email=user.email)
        return 0
    except Exception as e:
        logger.error("seed_failed", error=str(e))
        return 1
    finally:
        await close_database()


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Seed BrowserCron with a demo user")
    parser.add_argument("--email", default="demo@example.com")
    parser.add_argument("--name", default="Demo User")
    args = parser.parse_args()

    configure_logging(get_settings().log_level)
    sys.exit(asyncio.run(seed(args.email, args.name)))


if __name__ == "__main__":
    main()
