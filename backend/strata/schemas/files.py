"""
Strata Backend: File Entity and Request Schemas
===============================================

What:  StoredFile (what a FileStorage adapter returns) and the schemas for the
       file upload routes.
How:   Binary content travels through the JSON transport as base64. The schema
       only checks that the field is a non-empty string; decoding and the size
       limit are service concerns (the size is only known after decoding).
"""

import base64
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from strata.validation import Schema

# Storage keys: no path separators, no leading dot
KEY_PATTERN = r"^[A-Za-z0-9_][A-Za-z0-9._-]{0,127}$"

# Keys starting with "_" belong to the services (user avatars);
# the /files API can only address keys outside that namespace
RESERVED_KEY_PREFIX = "_"
PUBLIC_KEY_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$"


class StoredFile(BaseModel):
    """A file held by a FileStorage adapter."""

    model_config = ConfigDict(frozen=True)

    key: str
    content_type: str
    size: int = Field(ge=0)
    content: bytes = Field(repr=False)

    def metadata(self) -> Dict[str, Any]:
        return {"key": self.key, "content_type": self.content_type, "size": self.size}

    def to_public(self) -> Dict[str, Any]:
        return {**self.metadata(), "content": base64.b64encode(self.content).decode("ascii")}


UPLOAD_SCHEMA = Schema.model_validate(
    {
        "name": "Upload",
        "fields": {
            "content": {"type": "string", "min_length": 1},
            "content_type": {
                "type": "string",
                "required": False,
                "pattern": r"^[\w.+-]+/[\w.+-]+$",
                "max_length": 127,
                "default": "application/octet-stream",
            },
        },
    }
)

FILE_KEY_PARAMS_SCHEMA = Schema.model_validate(
    {
        "name": "FileKeyParams",
        "fields": {"key": {"type": "string", "pattern": PUBLIC_KEY_PATTERN}},
        "strict": False,
    }
)
