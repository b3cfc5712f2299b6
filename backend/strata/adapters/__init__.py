# Adapters package init
"""
Strata Backend: Infrastructure Adapters
=======================================

What:  Concrete implementations of the capability interfaces.

Adapter Inventory:
    Repository[User]
        - InMemoryRepository:  dict + asyncio.Lock          (PERSISTENCE_BACKEND=memory)
        - SqlUserRepository:   async SQLAlchemy             (PERSISTENCE_BACKEND=sqlalchemy)
    FileStorage
        - InMemoryFileStorage: dict + asyncio.Lock          (FILE_STORAGE_BACKEND=memory)
        - LocalFileStorage:    aiofiles under STORAGE_ROOT  (FILE_STORAGE_BACKEND=local)

Every adapter translates backend-native failures into the Strata error
taxonomy; no driver or OS exception crosses this package boundary.
"""

from strata.adapters.local_storage import LocalFileStorage
from strata.adapters.memory_persistence import InMemoryRepository
from strata.adapters.memory_storage import InMemoryFileStorage
from strata.adapters.sql_persistence import SqlUserRepository

__all__ = [
    "InMemoryFileStorage",
    "InMemoryRepository",
    "LocalFileStorage",
    "SqlUserRepository",
]
