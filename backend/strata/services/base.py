"""
Strata Backend: Service Error Policy
====================================

What:  Shared error handling for every service method.
How:   `BaseService.guard(operation)` lets taxonomy errors (StrataError and
       subclasses) propagate untouched and wraps anything else in an
       InternalError after logging it with the traceback.

Example:
    async def get_user(self, user_id):
        with self.guard("get_user", user_id=user_id):
            ...
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from strata.exceptions import InternalError, StrataError

logger = logging.getLogger(__name__)


class BaseService:
    @contextmanager
    def guard(self, operation: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except StrataError:
            raise
        except Exception as e:
            logger.error(
                "Unexpected error in %s.%s: %s",
                type(self).__name__,
                operation,
                e,
                exc_info=True,
            )
            raise InternalError(
                message=f"{operation} failed unexpectedly",
                context={"original_error": type(e).__name__, **context},
            ) from e
