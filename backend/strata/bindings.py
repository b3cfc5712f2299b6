"""
Strata Backend: Adapter Bindings
================================

What:  Associates each capability interface with exactly one adapter instance
       for the lifetime of the process.
How:   build_bindings() picks adapters from explicit factory tables keyed by
       configuration. AdapterBindings.start() starts every adapter and freezes
       the table; close() releases adapters in reverse order through an
       AsyncExitStack, including the ones whose start() failed half-way.
Who:   Built and started by the FastAPI lifespan (main.py) before the route
       registry accepts traffic; closed on shutdown.

Lifecycle:
    bindings = build_bindings(settings)     # construct adapters
    await bindings.start()                  # acquire resources, freeze
    ... serve requests (read-only) ...
    await bindings.close()                  # release, reverse order
"""

import logging
from contextlib import AsyncExitStack
from typing import Any, Callable, Dict, Type, TypeVar

from strata.adapters import (
    InMemoryFileStorage,
    InMemoryRepository,
    LocalFileStorage,
    SqlUserRepository,
)
from strata.config import Settings
from strata.interfaces import FileStorage, Repository
from strata.schemas.user import User

logger = logging.getLogger(__name__)

InterfaceT = TypeVar("InterfaceT")


class BindingError(RuntimeError):
    """Raised on invalid binding changes or lookups. A programming error, never a request error."""


class AdapterBindings:
    """
    Interface → adapter table.

    Binding is only possible before start(); afterwards the table is frozen and
    any bind() raises BindingError.
    """

    def __init__(self):
        self._bindings: Dict[type, Any] = {}
        self._frozen = False
        self._stack = AsyncExitStack()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def bind(self, interface: Type[InterfaceT], adapter: InterfaceT) -> None:
        if self._frozen:
            raise BindingError(f"Cannot bind {interface.__name__}: bindings are frozen")
        if interface in self._bindings:
            raise BindingError(f"{interface.__name__} is already bound")
        if not isinstance(adapter, interface):
            raise BindingError(
                f"{type(adapter).__name__} does not implement {interface.__name__}"
            )
        self._bindings[interface] = adapter

    def resolve(self, interface: Type[InterfaceT]) -> InterfaceT:
        try:
            return self._bindings[interface]
        except KeyError:
            raise BindingError(f"No adapter bound for {interface.__name__}") from None

    def freeze(self) -> None:
        self._frozen = True

    async def start(self) -> None:
        """
        Start every bound adapter in binding order, then freeze.

        If an adapter fails to start, everything already registered for release
        is closed before the error propagates.
        """
        try:
            for interface, adapter in self._bindings.items():
                # Registered before start() so partially acquired resources are released too
                self._stack.push_async_callback(adapter.close)
                await adapter.start()
                logger.info("Bound %s → %s", interface.__name__, type(adapter).__name__)
        except BaseException:
            await self.close()
            raise
        self.freeze()

    async def close(self) -> None:
        """Release every adapter, last started first."""
        await self._stack.aclose()
        logger.info("Adapter bindings released")

    async def health(self) -> Dict[str, bool]:
        """Probe every adapter. A probe that raises counts as unhealthy."""
        results: Dict[str, bool] = {}
        for interface, adapter in self._bindings.items():
            try:
                results[interface.__name__] = bool(await adapter.health_check())
            except Exception as e:
                logger.warning("Health check for %s failed: %s", interface.__name__, e)
                results[interface.__name__] = False
        return results

    async def __aenter__(self) -> "AdapterBindings":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


# ══════════════════════════════════════════════════════════════════════════
# Adapter Factories
# ══════════════════════════════════════════════════════════════════════════

PERSISTENCE_FACTORIES: Dict[str, Callable[[Settings], Repository]] = {
    "memory": lambda settings: InMemoryRepository(User, unique_fields=("email",)),
    "sqlalchemy": lambda settings: SqlUserRepository(settings),
}

FILE_STORAGE_FACTORIES: Dict[str, Callable[[Settings], FileStorage]] = {
    "memory": lambda settings: InMemoryFileStorage(),
    "local": lambda settings: LocalFileStorage(settings.storage_root),
}


def build_bindings(settings: Settings) -> AdapterBindings:
    """Construct (but do not start) the adapters named by `settings`."""
    bindings = AdapterBindings()
    bindings.bind(Repository, PERSISTENCE_FACTORIES[settings.persistence_backend](settings))
    bindings.bind(FileStorage, FILE_STORAGE_FACTORIES[settings.file_storage_backend](settings))
    return bindings
