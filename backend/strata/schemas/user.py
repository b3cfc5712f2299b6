"""
Strata Backend: User Entity and Request Schemas
===============================================

What:  The User domain entity plus the declarative schemas for user routes.
How:   User is a pydantic model owned by the service layer and persisted through
       the Repository interface. Request schemas are plain dicts compiled into
       validation.Schema objects, so they can be inspected and tested without
       any transport.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from strata.validation import Schema


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """
    A registered user.

    `id` is None until a Repository adapter assigns one on create().
    Email addresses are stored lower-cased and are unique.
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    name: str
    email: str
    avatar_key: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_public(self) -> Dict[str, Any]:
        """JSON-ready representation returned by the controllers."""
        return self.model_dump(mode="json")


# ══════════════════════════════════════════════════════════════════════════
# Request Schemas
# ══════════════════════════════════════════════════════════════════════════

NAME_FIELD = {"type": "string", "min_length": 1, "max_length": 200}
EMAIL_FIELD = {"type": "string", "format": "email", "max_length": 320}

CREATE_USER_SCHEMA = Schema.model_validate(
    {
        "name": "CreateUser",
        "fields": {
            "name": NAME_FIELD,
            "email": EMAIL_FIELD,
        },
    }
)

UPDATE_USER_SCHEMA = Schema.model_validate(
    {
        "name": "UpdateUser",
        "fields": {
            "name": {**NAME_FIELD, "required": False},
            "email": {**EMAIL_FIELD, "required": False},
        },
        "min_fields": 1,
    }
)

USER_ID_PARAMS_SCHEMA = Schema.model_validate(
    {
        "name": "UserIdParams",
        "fields": {"user_id": {"type": "string", "format": "uuid"}},
        "strict": False,
    }
)

LIST_USERS_QUERY_SCHEMA = Schema.model_validate(
    {
        "name": "ListUsersQuery",
        "fields": {
            "limit": {"type": "integer", "required": False, "minimum": 1, "maximum": 100, "default": 20},
            "offset": {"type": "integer", "required": False, "minimum": 0, "default": 0},
        },
        "strict": False,
    }
)
