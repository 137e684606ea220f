"""MongoDB database connection using Motor (async driver)."""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from timetracker.config import settings

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None

    async def connect(self) -> None:
        """Connect to MongoDB and make sure indexes exist."""
        self.client = AsyncIOMotorClient(settings.mongodb_url)
        self.db = self.client[settings.mongodb_db_name]
        await ensure_indexes(self.db)
        logger.info("Connected to MongoDB: %s", settings.mongodb_db_name)

    async def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    def get_collection(self, name: str):
        """Get a MongoDB collection."""
        if self.db is None:
            raise RuntimeError("Database not connected")
        return self.db[name]


async def ensure_indexes(db) -> None:
    """
    Create the indexes the time tracking invariants rely on.

    The partial unique index on ``user_id`` over open entries is what makes
    the store refuse a second running or paused timer for the same user.
    """
    await db["time_entries"].create_index(
        [("user_id", ASCENDING)],
        name="one_open_timer_per_user",
        unique=True,
        partialFilterExpression={"is_open": True},
    )
    await db["time_entries"].create_index(
        [("user_id", ASCENDING), ("start_time", DESCENDING)],
        name="user_start_time",
    )
    await db["time_entries"].create_index([("task_id", ASCENDING)], name="task")
    await db["users"].create_index("email", unique=True, name="email")


# Global database instance
database = Database()


async def get_database() -> AsyncIOMotorDatabase:
    """Dependency to get database instance."""
    if database.db is None:
        raise RuntimeError("Database not connected")
    return database.db
