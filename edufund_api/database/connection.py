"""
Database Connection Management

Owns the MongoDB client and Beanie initialization for the API process.
"""

import logging
from typing import Any

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from edufund_api.database.models import DOCUMENT_MODELS


logger = logging.getLogger(__name__)


class DatabaseManager:
    """MongoDB connection with lazy, idempotent initialization"""

    def __init__(self, connection_string: str, database_name: str):
        """
        Initialize database manager

        Args:
            connection_string: MongoDB URI
            database_name: Database holding the donation collections
        """
        self.connection_string = connection_string
        self.database_name = database_name
        self.client: AsyncIOMotorClient | None = None
        self._database: Any = None
        self._initialized = False

    async def initialize(self) -> None:
        """Connect and register the Beanie document models (creates indexes)"""
        if self._initialized:
            return

        self.client = AsyncIOMotorClient(
            self.connection_string,
            maxPoolSize=50,
            minPoolSize=5,
            maxIdleTimeMS=300000,  # 5 minutes
        )
        self._database = self.client[self.database_name]

        await init_beanie(database=self._database, document_models=DOCUMENT_MODELS)

        self._initialized = True
        logger.info(f"MongoDB initialized (database: {self.database_name})")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def database(self) -> Any:
        """Initialized Motor database"""
        if not self._initialized:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._database

    async def ping(self) -> bool:
        """Check that MongoDB answers"""
        if not self.client:
            return False
        try:
            await self.client.admin.command("ping")
            return True
        except Exception as e:
            logger.warning(f"MongoDB ping failed: {str(e)}")
            return False

    async def close(self) -> None:
        """Close database connections"""
        if self.client:
            self.client.close()
            self.client = None
        self._initialized = False
