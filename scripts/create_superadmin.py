"""
Seed the first Superadmin account.

Creates the tables if needed and inserts an Active Superadmin, unless one
already exists. Reads DATABASE_URL from the environment (or .env).
"""

import argparse
import asyncio
import getpass

from dotenv import load_dotenv

# Load env vars
load_dotenv()

from stocktrail.api.dependencies import (
    Settings,
    create_tables,
    dispose_database,
    get_session_factory,
    init_database,
)
from stocktrail.identity import IdentityService


async def main(email: str, password: str, name: str, database_url: str = None):
    settings = Settings.from_env()
    if database_url:
        settings.database_url = database_url

    init_database(settings)
    try:
        await create_tables()
        async with get_session_factory()() as session:
            user = await IdentityService(session).bootstrap_superadmin(name, email, password)
    finally:
        await dispose_database()

    if user is None:
        print("A Superadmin already exists; nothing to do.")
    else:
        print(f"Created Superadmin {user.email} (id {user.id})")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the first StockTrail Superadmin")
    parser.add_argument("email", help="Login email of the Superadmin")
    parser.add_argument("--name", default="System Administrator", help="Display name")
    parser.add_argument("--password", help="Password (prompted for if omitted)")
    parser.add_argument("--database-url", help="Override DATABASE_URL")

    args = parser.parse_args()
    password = args.password or getpass.getpass("Password: ")

    asyncio.run(main(args.email, password, args.name, args.database_url))
