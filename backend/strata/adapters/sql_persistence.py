"""
Strata Backend: SQLAlchemy User Repository Adapter
==================================================

What:  Repository[User] implementation on async SQLAlchemy.
How:   Owns an AsyncEngine (connection pool) built from Settings. Every
       operation runs in its own session/transaction; SQLAlchemy exceptions are
       translated into the Strata error taxonomy before leaving this module.
Who:   Bound when PERSISTENCE_BACKEND=sqlalchemy.

Error Translation:
    IntegrityError                               → ConflictError
    OperationalError / InterfaceError /
    pool TimeoutError / OSError                  → BackendUnavailableError
    any other SQLAlchemyError                    → InternalError
"""

import logging
from contextlib import asynccontextmanager
from datetime import timezone
from typing import Any, AsyncIterator, List, Mapping, Optional

from sqlalchemy import func, select, text
from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from strata.config import Settings
from strata.database import build_engine, build_session_factory, create_schema
from strata.exceptions import (
    BackendUnavailableError,
    ConflictError,
    InternalError,
    NotFoundError,
)
from strata.interfaces.persistence import Repository
from strata.models.user import UserRow
from strata.schemas.user import User, utcnow

logger = logging.getLogger(__name__)

_UPDATABLE = ("name", "email", "avatar_key")


class SqlUserRepository(Repository[User]):
    """
    Users stored in the `users` table.

    Args:
        settings: Supplies DATABASE_URL, pool sizing and DB_CREATE_SCHEMA.
        engine:   Optional pre-built engine (tests); disposed on close() all the same.
    """

    def __init__(self, settings: Settings, engine: Optional[AsyncEngine] = None):
        self._settings = settings
        self._engine = engine or build_engine(settings)
        self._sessions = build_session_factory(self._engine)

    async def start(self) -> None:
        if self._settings.db_create_schema:
            async with self._translate_errors("create_schema"):
                await create_schema(self._engine)
        logger.info("SqlUserRepository ready (%s)", self._engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("SqlUserRepository engine disposed")

    # ── Error Translation ─────────────────────────────────────────────────

    @asynccontextmanager
    async def _translate_errors(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except IntegrityError as e:
            raise ConflictError(
                message="A user with this email already exists",
                field="email",
                context={"operation": operation, "db_error": str(e.orig)},
            ) from e
        except (OperationalError, InterfaceError, PoolTimeoutError, OSError) as e:
            logger.warning("Database unavailable during %s: %s", operation, e)
            raise BackendUnavailableError(
                context={"operation": operation, "error_type": type(e).__name__},
            ) from e
        except SQLAlchemyError as e:
            raise InternalError(
                message=f"Unexpected database error during {operation}",
                context={"operation": operation, "error_type": type(e).__name__, "error": str(e)},
            ) from e

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Session that commits on success and rolls back on any error."""
        async with self._translate_errors(operation):
            async with self._sessions() as session:
                async with session.begin():
                    yield session

    @staticmethod
    def _to_entity(row: UserRow) -> User:
        user = User.model_validate(row)
        # SQLite hands back naive datetimes; every timestamp is stored in UTC
        if user.created_at.tzinfo is None:
            user.created_at = user.created_at.replace(tzinfo=timezone.utc)
        if user.updated_at.tzinfo is None:
            user.updated_at = user.updated_at.replace(tzinfo=timezone.utc)
        return user

    # ── Repository Operations ─────────────────────────────────────────────

    async def create(self, entity: User) -> User:
        row = UserRow(
            name=entity.name,
            email=entity.email,
            avatar_key=entity.avatar_key,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
        async with self._session("create") as session:
            session.add(row)
            await session.flush()
        logger.debug("Created user %s", row.id)
        return self._to_entity(row)

    async def find_by_id(self, entity_id: str) -> Optional[User]:
        async with self._session("find_by_id") as session:
            row = await session.get(UserRow, entity_id)
            return self._to_entity(row) if row is not None else None

    async def update(self, entity_id: str, changes: Mapping[str, Any]) -> User:
        async with self._session("update") as session:
            row = await session.get(UserRow, entity_id)
            if row is None:
                raise NotFoundError(resource="user", resource_id=entity_id)
            for field in _UPDATABLE:
                if field in changes:
                    setattr(row, field, changes[field])
            row.updated_at = changes.get("updated_at") or utcnow()
            await session.flush()
        return self._to_entity(row)

    async def delete(self, entity_id: str) -> None:
        async with self._session("delete") as session:
            row = await session.get(UserRow, entity_id)
            if row is None:
                raise NotFoundError(resource="user", resource_id=entity_id)
            await session.delete(row)

    async def list(self, limit: int = 20, offset: int = 0) -> List[User]:
        query = (
            select(UserRow)
            .order_by(UserRow.created_at.asc(), UserRow.id.asc())
            .limit(limit)
            .offset(offset)
        )
        async with self._session("list") as session:
            result = await session.execute(query)
            return [self._to_entity(row) for row in result.scalars().all()]

    async def count(self) -> int:
        async with self._session("count") as session:
            result = await session.execute(select(func.count(UserRow.id)))
            return result.scalar() or 0

    async def health_check(self) -> bool:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Health check: database unreachable: %s", e)
            return False
