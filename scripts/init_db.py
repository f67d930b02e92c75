"""
Database initialization script

Run once (or after schema changes) to create collections and indexes:
    python -m scripts.init_db

Also reports generations still pending, which the next application
start will mark as failed.
"""

import asyncio

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from app.core.logging import setup_logging, get_logger  # noqa: E402
from app.db.indexes import create_indexes  # noqa: E402
from app.db.mongo import (  # noqa: E402
    close_mongo_connection,
    connect_to_mongo,
    get_generations_collection,
    get_users_collection,
)
from app.models.generation import GenerationStatus  # noqa: E402

setup_logging()
logger = get_logger(__name__)


async def main():
    await connect_to_mongo()
    try:
        await create_indexes()

        users = await get_users_collection().count_documents({})
        pending = await get_generations_collection().count_documents(
            {"status": GenerationStatus.PENDING.value}
        )
        logger.info(f"📊 Users: {users}, pending generations: {pending}")
        if pending:
            logger.warning("⚠️ Pending generations will be marked failed on next startup")
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    asyncio.run(main())
