"""
Strata Backend: Request Dispatcher
==================================

What:  Runs one RequestEnvelope through the pipeline and returns exactly one
       ResultEnvelope.
How:   resolve route → validate path/query/body → run controller under a
       deadline → map any error to an ErrorDescriptor. This is the single place
       where exceptions become responses.
Who:   Called by the HTTP bridge (main.py) for every request, and directly by
       the tests with hand-built envelopes.

Pipeline:
    ┌──────────┐   ┌────────────┐   ┌────────────┐   ┌──────────────┐
    │ Resolve  │──▶│  Validate  │──▶│ Controller │──▶│ ResultEnvelope│
    │ (404)    │   │  (400)     │   │ (deadline) │   │              │
    └──────────┘   └────────────┘   └────────────┘   └──────────────┘
          └──────────────┴────────────────┴── StrataError / Exception
                                                 → status table → error body
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from strata.config import Settings
from strata.exceptions import (
    DeadlineExceededError,
    InternalError,
    StrataError,
    ValidationError,
)
from strata.routing import Route, RouteRegistry
from strata.schemas.envelope import ErrorDescriptor, RequestEnvelope, ResultEnvelope
from strata.validation import BODY_KEY, Schema, ValidatedInput, validate

logger = logging.getLogger(__name__)

DEFAULT_STATUS_CODES: Dict[str, int] = {
    "ValidationError": 400,
    "NotFound": 404,
    "ConflictAlreadyExists": 409,
    "ServiceError": 422,
    "InternalError": 500,
    "BackendUnavailable": 503,
    "TimeoutError": 504,
}

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class RequestContext:
    """
    What a controller receives.

    `params`, `query` and `body` are ValidatedInput when the route declares a
    schema for them, otherwise None.
    """

    envelope: RequestEnvelope
    route: Route
    services: Any
    params: Optional[ValidatedInput] = None
    query: Optional[ValidatedInput] = None
    body: Optional[ValidatedInput] = None


class Dispatcher:
    """
    Args:
        registry: Frozen RouteRegistry
        services: Object handed to controllers as ctx.services
        settings: Supplies the default deadline and status overrides
    """

    def __init__(self, registry: RouteRegistry, services: Any, settings: Optional[Settings] = None):
        self.registry = registry
        self.services = services
        self.default_timeout = (
            settings.request_timeout_seconds if settings else DEFAULT_TIMEOUT_SECONDS
        )
        self.status_codes = dict(DEFAULT_STATUS_CODES)
        if settings:
            self.status_codes.update(settings.error_status_overrides)

    async def dispatch(self, envelope: RequestEnvelope) -> ResultEnvelope:
        try:
            return await self._dispatch(envelope)
        except StrataError as exc:
            return self.error_result(exc, envelope)
        except Exception as exc:
            internal = InternalError(
                message=f"Unhandled {type(exc).__name__}: {exc}",
                context={"original_error": type(exc).__name__},
            )
            internal.__cause__ = exc
            return self.error_result(internal, envelope)

    async def _dispatch(self, envelope: RequestEnvelope) -> ResultEnvelope:
        match = self.registry.resolve(envelope.method, envelope.path)
        route = match.route

        details: Dict[str, str] = {}
        params = self._validate_part(route.params, match.params, "path", details)
        query = self._validate_part(route.query, envelope.query, "query", details)
        body = self._validate_part(route.body, envelope.body, None, details)
        if details:
            raise ValidationError(details=details, context={"route": route.name})

        ctx = RequestContext(
            envelope=envelope,
            route=route,
            services=self.services,
            params=params,
            query=query,
            body=body,
        )

        timeout = route.timeout or self.default_timeout
        try:
            result = await asyncio.wait_for(route.handler(ctx), timeout=timeout)
        except asyncio.TimeoutError:
            raise DeadlineExceededError(timeout=timeout, context={"route": route.name}) from None

        return self._to_result(route, result)

    @staticmethod
    def _validate_part(
        schema: Optional[Schema],
        raw: Any,
        prefix: Optional[str],
        details: Dict[str, str],
    ) -> Optional[ValidatedInput]:
        if schema is None:
            return None
        if prefix is not None and isinstance(raw, Mapping):
            raw = dict(raw)
        try:
            return validate(schema, raw)
        except ValidationError as exc:
            for key, reason in exc.details.items():
                if prefix is None:
                    details[key] = reason
                elif key == BODY_KEY:
                    details[prefix] = reason
                else:
                    details[f"{prefix}.{key}"] = reason
            return None

    @staticmethod
    def _to_result(route: Route, result: Any) -> ResultEnvelope:
        if isinstance(result, ResultEnvelope):
            return result
        if route.status_code == 204:
            return ResultEnvelope.no_content()
        return ResultEnvelope.success(result, status_code=route.status_code)

    def error_result(self, exc: StrataError, envelope: RequestEnvelope) -> ResultEnvelope:
        """Map a taxonomy error to its error envelope (also used by the HTTP bridge)."""
        status_code = self.status_codes.get(exc.kind, 500)

        if isinstance(exc, InternalError):
            logger.error(
                "Internal error on %s %s: %s | context=%s",
                envelope.method,
                envelope.path,
                exc.message,
                exc.context,
                exc_info=exc.__cause__ or exc,
            )
            message = InternalError.OPAQUE_MESSAGE
        else:
            log = logger.error if status_code >= 500 else logger.info
            log(
                "%s on %s %s: %s | context=%s",
                exc.kind,
                envelope.method,
                envelope.path,
                exc.message,
                exc.context,
            )
            message = exc.message

        descriptor = ErrorDescriptor(
            kind=exc.kind,
            message=message,
            details=None if isinstance(exc, InternalError) else (exc.details or None),
        )
        return ResultEnvelope.error(status_code, descriptor)
