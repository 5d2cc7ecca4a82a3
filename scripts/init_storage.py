#!/usr/bin/env python3
"""Manually create the tables/collections of the configured storage backend."""

import asyncio

from src.core import db_client
from src.core.config import settings
from src.core.schema import init_db, sync_schema


async def main() -> None:
    if settings.storage_backend == "sqlite":
        await init_db(db_path=settings.sqlite_db_path)
        await db_client.close_connection(db_path=settings.sqlite_db_path)
    elif settings.storage_backend == "pocketbase":
        # Ensure credentials are present
        admin_email = settings.require_credential("pocketbase_admin_email", "PocketBase Admin Email")
        admin_password = settings.require_credential("pocketbase_admin_password", "PocketBase Admin Password")

        await sync_schema(
            admin_email=admin_email,
            admin_password=admin_password,
        )
    else:
        print("Local storage needs no initialization")  # noqa: T201


if __name__ == "__main__":
    asyncio.run(main())
