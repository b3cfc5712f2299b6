"""
Strata Backend: Service Container
=================================

What:  Holds the service instances the controllers reach through ctx.services.
How:   Built once in the lifespan from started, frozen AdapterBindings.
"""

from dataclasses import dataclass

from strata.bindings import AdapterBindings
from strata.config import Settings
from strata.interfaces import FileStorage, Repository
from strata.services.file_service import FileService
from strata.services.health_service import HealthService
from strata.services.retry import RetryPolicy
from strata.services.user_service import UserService


@dataclass(frozen=True)
class ServiceContainer:
    users: UserService
    files: FileService
    health: HealthService

    @classmethod
    def build(cls, bindings: AdapterBindings, settings: Settings) -> "ServiceContainer":
        retry = RetryPolicy.from_settings(settings)
        storage = bindings.resolve(FileStorage)
        return cls(
            users=UserService(
                bindings.resolve(Repository),
                storage,
                retry,
                max_file_size=settings.max_file_size,
            ),
            files=FileService(storage, retry, max_file_size=settings.max_file_size),
            health=HealthService(bindings),
        )
