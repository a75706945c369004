"""
FindMyHelper Backend — Storage Selection
==========================================

What:  Builds and initializes the Storage backend named by STORAGE_BACKEND.

Selection policy:
    memory    MemoryStorage, with a warning that data is volatile.
    database  DatabaseStorage; any initialization failure is fatal.
    auto      DatabaseStorage, falling back to MemoryStorage when the
              database cannot be initialized. Production never falls back:
              there `auto` behaves exactly like `database`.
"""

import logging
from typing import Optional

from findmyhelper.config import Settings, settings as default_settings
from findmyhelper.exceptions import StorageConfigurationError
from findmyhelper.storage.base import Storage
from findmyhelper.storage.database import DatabaseStorage
from findmyhelper.storage.memory import MemoryStorage

logger = logging.getLogger(__name__)

__all__ = ["Storage", "MemoryStorage", "DatabaseStorage", "build_storage"]


async def build_storage(config: Optional[Settings] = None) -> Storage:
    """
    Create the configured storage backend and run its initialize().

    Raises:
        StorageConfigurationError: the database backend was required (or
        we are in production) and could not be initialized.
    """
    config = config or default_settings
    choice = config.storage_backend

    if choice == "memory":
        logger.warning("Using in-memory storage: all data is lost when the process exits")
        storage: Storage = MemoryStorage()
        await storage.initialize()
        return storage

    database = DatabaseStorage(config=config)
    try:
        await database.initialize()
        logger.info("Using database storage")
        return database
    except StorageConfigurationError as e:
        await database.close()
        if choice == "database" or config.is_production:
            logger.error("Database storage unavailable: %s | Context: %s", e.message, e.context)
            raise

        logger.warning(
            "Database unavailable (%s); falling back to in-memory storage. "
            "Data will not survive a restart.",
            e.context.get("error", e.message),
        )
        storage = MemoryStorage()
        await storage.initialize()
        return storage
