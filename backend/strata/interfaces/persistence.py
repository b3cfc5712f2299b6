"""
Strata Backend: Persistence Capability Interface
================================================

What:  Abstract repository contract for storing domain entities.
How:   Concrete adapters inherit from Repository and implement every operation.
Who:   UserService calls it; InMemoryRepository and SqlUserRepository implement it.

Contract:
    - Identical inputs give equivalent outcomes on every adapter
    - Uniqueness is enforced atomically inside the adapter: create()/update()
      raise ConflictError, never a silent overwrite
    - Backend-native exceptions never escape: adapters translate them into
      NotFoundError, ConflictError, BackendUnavailableError or InternalError
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, List, Mapping, Optional, TypeVar

from pydantic import BaseModel

EntityT = TypeVar("EntityT", bound=BaseModel)


class Repository(ABC, Generic[EntityT]):
    """
    Abstract persistence for one entity type.

    Entities are pydantic models with an `id` attribute that is None before
    create() and a string afterwards.
    """

    async def start(self) -> None:
        """Acquire backend resources. Called once before traffic is served."""

    async def close(self) -> None:
        """Release backend resources. Called once at shutdown."""

    @abstractmethod
    async def create(self, entity: EntityT) -> EntityT:
        """
        Persist a new entity and return it with its generated id.

        Raises:
            ConflictError: another entity already holds one of the unique keys.
            BackendUnavailableError: the backend could not be reached.
        """
        ...

    @abstractmethod
    async def find_by_id(self, entity_id: str) -> Optional[EntityT]:
        """
        Return the entity with `entity_id`, or None when it does not exist.

        Idempotent: repeated calls against unchanged state return equal results.
        """
        ...

    @abstractmethod
    async def update(self, entity_id: str, changes: Mapping[str, Any]) -> EntityT:
        """
        Apply `changes` to an existing entity and return the updated entity.

        Raises:
            NotFoundError: no entity with `entity_id`.
            ConflictError: the change would duplicate a unique key.
        """
        ...

    @abstractmethod
    async def delete(self, entity_id: str) -> None:
        """
        Remove an entity.

        Raises:
            NotFoundError: no entity with `entity_id`.
        """
        ...

    @abstractmethod
    async def list(self, limit: int = 20, offset: int = 0) -> List[EntityT]:
        """Return a page of entities ordered by creation time, then id."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Total number of stored entities."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the backend is reachable. Never raises."""
        ...
