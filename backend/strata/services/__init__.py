# Services package init
"""
Strata Backend: Service Layer
=============================

What:  Business logic between the controllers (transport) and the capability
       interfaces (infrastructure).
How:   Services receive ValidatedInput or plain ids, call adapters only through
       Repository / FileStorage, and raise taxonomy errors. Anything else is
       wrapped in InternalError by BaseService.guard().

Service Inventory:
    - UserService:   user registration, lookup, update, deletion, avatars
    - FileService:   keyed file upload / download / removal
    - HealthService: adapter health aggregation
    - RetryPolicy:   tenacity retries for idempotent adapter calls
    - ServiceContainer: the services above, as handed to controllers
"""

from strata.services.container import ServiceContainer
from strata.services.file_service import FileService
from strata.services.health_service import HealthService
from strata.services.retry import RetryPolicy
from strata.services.user_service import UserService

__all__ = ["FileService", "HealthService", "RetryPolicy", "ServiceContainer", "UserService"]
