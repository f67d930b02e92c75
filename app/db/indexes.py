"""
app/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Ensures fast lookups and data integrity
- Supports the rolling-window quota aggregate
"""

from pymongo import ASCENDING, DESCENDING

from app.db.mongo import get_database, USERS_COLLECTION, GENERATIONS_COLLECTION
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes(database=None):
    """
    Creates all necessary database indexes for optimal performance.
    This function is idempotent - safe to run multiple times.
    """
    try:
        db = database if database is not None else get_database()
        users = db[USERS_COLLECTION]
        generations = db[GENERATIONS_COLLECTION]

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS COLLECTION INDEXES
        # ==============================================

        # Unique index on the chat platform id
        await users.create_index("telegram_id", unique=True, name="telegram_id_unique")
        logger.debug("Created unique index on users.telegram_id")

        # Registered users lookup
        await users.create_index("phone_number", name="phone_number_idx", sparse=True)
        logger.debug("Created index on users.phone_number")

        # ==============================================
        # GENERATIONS COLLECTION INDEXES
        # ==============================================

        # Rolling-window count + min(created_at) per user
        await generations.create_index(
            [("user_id", ASCENDING), ("created_at", DESCENDING), ("status", ASCENDING)],
            name="user_window_idx"
        )
        logger.debug("Created compound index on generations.user_id + created_at + status")

        # Startup sweep of orphaned reservations
        await generations.create_index("status", name="generation_status_idx")
        logger.debug("Created index on generations.status")

        logger.info("✅ All database indexes created successfully")

        user_indexes = await users.index_information()
        generation_indexes = await generations.index_information()

        logger.info(
            f"Index summary: Users={len(user_indexes)}, "
            f"Generations={len(generation_indexes)}"
        )

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    """
    Run this script directly to create indexes manually.
    """
    import asyncio
    from app.db.mongo import connect_to_mongo, close_mongo_connection

    async def main():
        await connect_to_mongo()
        await create_indexes()
        await close_mongo_connection()

    asyncio.run(main())
