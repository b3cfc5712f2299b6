"""
Strata Backend: Transport Envelopes
===================================

What:  The transport-neutral request and response shapes of the pipeline.
How:   Frozen pydantic models. The HTTP bridge (main.py) converts Starlette
       requests into RequestEnvelope and ResultEnvelope into JSONResponse; the
       dispatcher and controllers only ever see envelopes.

Shapes:
    RequestEnvelope  method, path, body, headers, query
    ResultEnvelope   status_code, body, headers
    ErrorDescriptor  {"kind": str, "message": str, "details"?: {field: reason}}
"""

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})


class RequestEnvelope(BaseModel):
    """One inbound call. Immutable once received."""

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    body: Any = None
    headers: Mapping[str, str] = Field(default_factory=dict)
    query: Mapping[str, str] = Field(default_factory=dict)

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        upper = v.upper()
        if upper not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method '{v}'")
        return upper

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("path must start with '/'")
        return v

    @field_validator("headers")
    @classmethod
    def normalize_headers(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        # Header names are case-insensitive; store them lower-cased, read-only
        return MappingProxyType({str(k).lower(): str(val) for k, val in v.items()})

    @field_validator("query")
    @classmethod
    def freeze_query(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType({str(k): str(val) for k, val in v.items()})

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)


class ErrorDescriptor(BaseModel):
    """Body of every error ResultEnvelope."""

    model_config = ConfigDict(frozen=True)

    kind: str
    message: str
    details: Optional[Dict[str, str]] = None

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ResultEnvelope(BaseModel):
    """The single response emitted for one RequestEnvelope."""

    model_config = ConfigDict(frozen=True)

    status_code: int = Field(ge=100, le=599)
    body: Any = None
    headers: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def success(cls, body: Any = None, status_code: int = 200, **headers: str) -> "ResultEnvelope":
        return cls(status_code=status_code, body=body, headers=headers)

    @classmethod
    def no_content(cls) -> "ResultEnvelope":
        return cls(status_code=204, body=None)

    @classmethod
    def error(
        cls,
        status_code: int,
        descriptor: ErrorDescriptor,
        headers: Optional[Dict[str, str]] = None,
    ) -> "ResultEnvelope":
        return cls(status_code=status_code, body=descriptor.to_body(), headers=headers or {})

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300
