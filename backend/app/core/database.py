"""
Tubely MongoDB Database Client Module

This module provides async MongoDB connection management for Tubely using
Motor (async MongoDB driver). It implements:
- Connection pooling with configurable pool size
- The `videos` collection accessor and its indexes
- Startup/shutdown lifecycle management for FastAPI integration
- Retry logic with exponential backoff for connection reliability

UUIDs are stored in the standard binary subtype (`uuidRepresentation="standard"`)
so `Video.id` and `Video.user_id` round-trip without conversion.
"""

import asyncio
import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from app.config import Settings


# Configure module logger for structured logging
logger = logging.getLogger(__name__)

VIDEOS_COLLECTION = "videos"


class DatabaseClient:
    """
    Async MongoDB client wrapper with connection pooling and lifecycle management.

    Attributes:
        _mongodb_uri: MongoDB connection URI
        _db_name: Database name to connect to
        _min_pool_size: Minimum number of connections in pool
        _max_pool_size: Maximum number of connections in pool
        _client: Motor async MongoDB client instance
        _database: Motor async database instance

    Example usage:
        ```python
        db_client = DatabaseClient(get_settings())
        await db_client.connect()

        videos = db_client.get_videos_collection()
        await videos.find_one({"_id": video_id})

        await db_client.close()
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self._mongodb_uri = settings.mongodb_uri
        self._db_name = settings.mongodb_db_name
        self._min_pool_size = settings.mongodb_min_pool_size
        self._max_pool_size = settings.mongodb_max_pool_size
        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None

        logger.info(
            f"DatabaseClient initialized with pool size {self._min_pool_size}-{self._max_pool_size} "
            f"for database: {self._db_name}"
        )

    async def connect(self) -> bool:
        """
        Establish MongoDB connection with retry logic and exponential backoff.

        Makes 3 attempts with 1s, 2s backoff between them.

        Returns:
            bool: True if connection successful, False on failure after all retries.
        """
        max_retries = 3
        retry_delay = 1.0

        for attempt in range(1, max_retries + 1):
            try:
                logger.info(
                    f"Attempting MongoDB connection (attempt {attempt}/{max_retries}) "
                    f"to {self._db_name}..."
                )

                self._client = AsyncIOMotorClient(
                    self._mongodb_uri,
                    minPoolSize=self._min_pool_size,
                    maxPoolSize=self._max_pool_size,
                    serverSelectionTimeoutMS=5000,
                    uuidRepresentation="standard",
                    tz_aware=True,
                )
                self._database = self._client[self._db_name]

                # Verify connection by running ping command
                await self._client.admin.command("ping")

                logger.info(f"Successfully connected to MongoDB database: {self._db_name}")
                return True

            except (ServerSelectionTimeoutError, ConnectionFailure):
                logger.exception(f"MongoDB connection failure (attempt {attempt}/{max_retries})")
            except PyMongoError:
                logger.exception(
                    f"Unexpected error connecting to MongoDB (attempt {attempt}/{max_retries})"
                )

            if attempt < max_retries:
                logger.warning(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2

        logger.error(
            f"Failed to connect to MongoDB after {max_retries} attempts. "
            "Check connection URI and server availability."
        )
        return False

    async def close(self) -> None:
        """Close the MongoDB connection. Safe to call when not connected."""
        if self._client is None:
            logger.warning("MongoDB close called but no active connection exists")
            return

        self._client.close()
        self._client = None
        self._database = None
        logger.info(f"MongoDB connection closed for database: {self._db_name}")

    def get_database(self) -> AsyncIOMotorDatabase:
        """
        Get the database instance for direct operations.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        if self._database is None:
            raise RuntimeError(
                "MongoDB database not available. Call connect() first or check connection status."
            )
        return self._database

    def get_videos_collection(self) -> AsyncIOMotorCollection:
        """
        Get the videos collection.

        Documents are `Video.to_document()` dumps keyed by the video UUID.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        return self.get_database()[VIDEOS_COLLECTION]

    async def create_indexes(self) -> None:
        """
        Create indexes for the owner lookups used by the API:
        - videos: user_id, (user_id, created_at desc)
        """
        videos = self.get_videos_collection()
        try:
            await videos.create_index("user_id")
            await videos.create_index([("user_id", 1), ("created_at", -1)])
        except PyMongoError:
            logger.exception("Error creating MongoDB indexes")
            raise
        logger.info(f"Created indexes on {VIDEOS_COLLECTION} collection")


# Container class for database client singleton to avoid global statements
class _DatabaseClientContainer:
    client: DatabaseClient | None = None


_container = _DatabaseClientContainer()


async def init_db(settings: Settings) -> DatabaseClient:
    """
    Initialize the global database client singleton.

    Connects to MongoDB and creates indexes. Called during FastAPI startup.

    Raises:
        RuntimeError: If connection to MongoDB fails after all retries.
    """
    if _container.client is not None:
        logger.warning("Database client already initialized, returning existing instance")
        return _container.client

    logger.info("Initializing MongoDB database client...")
    client = DatabaseClient(settings)

    if not await client.connect():
        raise RuntimeError(
            "Failed to establish MongoDB connection. "
            "Check mongodb_uri configuration and server availability."
        )

    await client.create_indexes()
    _container.client = client
    logger.info("MongoDB database client initialization complete")
    return client


async def close_db() -> None:
    """Close the global database client connection. Called during shutdown."""
    if _container.client is None:
        logger.warning("close_db called but no database client exists")
        return

    logger.info("Closing MongoDB database client...")
    await _container.client.close()
    _container.client = None


def get_db_client() -> DatabaseClient:
    """
    Get the global database client singleton instance.

    Raises:
        RuntimeError: If database client has not been initialized.
    """
    if _container.client is None:
        raise RuntimeError(
            "Database client not initialized. Call init_db() first during application startup."
        )
    return _container.client


__all__ = [
    "VIDEOS_COLLECTION",
    "DatabaseClient",
    "close_db",
    "get_db_client",
    "init_db",
]
