"""
Strata Backend: In-Memory Repository Adapter
============================================

What:  Repository implementation backed by a process-local dict.
How:   Every operation runs under one asyncio.Lock, so the uniqueness check and
       the insert of create()/update() are atomic with respect to other
       requests on the same event loop.
Who:   Bound when PERSISTENCE_BACKEND=memory (default) and used by the tests.

Entities are copied on the way in and out; callers never share an instance
with the store.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, Type

from strata.exceptions import ConflictError, NotFoundError
from strata.interfaces.persistence import EntityT, Repository
from strata.schemas.user import utcnow

logger = logging.getLogger(__name__)


class InMemoryRepository(Repository[EntityT], Generic[EntityT]):
    """
    Dict-backed repository for any pydantic entity with an `id` field.

    Args:
        entity_type:   The entity class (used in NotFound messages)
        unique_fields: Field names whose values must be unique across entities
    """

    def __init__(self, entity_type: Type[EntityT], unique_fields: Sequence[str] = ()):
        self.entity_type = entity_type
        self.unique_fields = tuple(unique_fields)
        self._resource = entity_type.__name__.lower()
        self._items: Dict[str, EntityT] = {}
        self._lock = asyncio.Lock()

    async def close(self) -> None:
        async with self._lock:
            self._items.clear()

    def _check_unique(self, candidate: EntityT, ignore_id: Optional[str] = None) -> None:
        for field in self.unique_fields:
            value = getattr(candidate, field)
            for existing in self._items.values():
                if existing.id != ignore_id and getattr(existing, field) == value:
                    raise ConflictError(
                        message=f"A {self._resource} with this {field} already exists",
                        field=field,
                    )

    async def create(self, entity: EntityT) -> EntityT:
        async with self._lock:
            stored = entity.model_copy(update={"id": uuid.uuid4().hex}, deep=True)
            self._check_unique(stored)
            self._items[stored.id] = stored
            logger.debug("Created %s %s", self._resource, stored.id)
            return stored.model_copy(deep=True)

    async def find_by_id(self, entity_id: str) -> Optional[EntityT]:
        async with self._lock:
            found = self._items.get(entity_id)
            return found.model_copy(deep=True) if found is not None else None

    async def update(self, entity_id: str, changes: Mapping[str, Any]) -> EntityT:
        async with self._lock:
            current = self._items.get(entity_id)
            if current is None:
                raise NotFoundError(resource=self._resource, resource_id=entity_id)
            updates = {k: v for k, v in changes.items() if k != "id"}
            if "updated_at" in self.entity_type.model_fields:
                updates.setdefault("updated_at", utcnow())
            updated = current.model_copy(update=updates, deep=True)
            self._check_unique(updated, ignore_id=entity_id)
            self._items[entity_id] = updated
            return updated.model_copy(deep=True)

    async def delete(self, entity_id: str) -> None:
        async with self._lock:
            if self._items.pop(entity_id, None) is None:
                raise NotFoundError(resource=self._resource, resource_id=entity_id)

    async def list(self, limit: int = 20, offset: int = 0) -> List[EntityT]:
        async with self._lock:
            ordered = sorted(
                self._items.values(),
                key=lambda e: (getattr(e, "created_at", None), e.id),
            )
            return [e.model_copy(deep=True) for e in ordered[offset:offset + limit]]

    async def count(self) -> int:
        async with self._lock:
            return len(self._items)

    async def health_check(self) -> bool:
        return True
