#!/usr/bin/env python3
"""Seed database with development users.

Creates user001..userNNN with deterministic ratings spread over [100, 5000]
(rating = 100 + (i * 37) % 4901). Idempotent: existing usernames are skipped.

Usage:
    cd services/api
    python -m scripts.seed            # 500 users
    python -m scripts.seed --count 2000 --create-tables
"""

import argparse
import asyncio
import os
import sys

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

from leaderboard.services.seeding import seed_users
from leaderboard.stores.postgres import close_db, create_tables, get_session_factory, init_db
from leaderboard.stores.scores import SqlScoreStore

load_dotenv()


async def seed_database(count: int, with_tables: bool) -> int:
    """Seed `count` users and return how many were inserted."""
    await init_db()
    try:
        if with_tables:
            await create_tables()
        store = SqlScoreStore(get_session_factory())
        created = await seed_users(store, count)
    finally:
        await close_db()

    print(f"Seeded {created} users ({count - created} already present)")
    print("Cached leaderboard pages expire within 2 minutes; restart or wait to see them.")
    return created


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the users table")
    parser.add_argument("--count", type=int, default=500, help="Number of seed users")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables first (development only; use alembic otherwise)",
    )
    args = parser.parse_args()
    asyncio.run(seed_database(args.count, args.create_tables))


if __name__ == "__main__":
    main()
