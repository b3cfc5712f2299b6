"""
Strata Backend: File Storage Capability Interface
=================================================

What:  Abstract contract for storing binary blobs under string keys.
Who:   FileService and UserService (avatars) call it; InMemoryFileStorage and
       LocalFileStorage implement it.

Contract:
    - put() overwrites an existing key and is idempotent
    - get()/delete() raise NotFoundError for unknown keys
    - Keys are validated identically by every adapter (validate_key)
"""

import re
from abc import ABC, abstractmethod

from strata.exceptions import ValidationError
from strata.schemas.files import KEY_PATTERN, StoredFile

_KEY_RE = re.compile(KEY_PATTERN)


def validate_key(key: str) -> str:
    """
    Reject keys that could escape a storage root or be misread as metadata.

    Raises:
        ValidationError: with details {"key": reason}
    """
    if not isinstance(key, str) or not _KEY_RE.match(key):
        raise ValidationError(
            message="Invalid storage key",
            details={"key": "must be 1-128 characters of letters, digits, '.', '_' or '-'"},
            context={"key": repr(key)},
        )
    return key


class FileStorage(ABC):
    """Abstract key → blob storage."""

    async def start(self) -> None:
        """Acquire backend resources. Called once before traffic is served."""

    async def close(self) -> None:
        """Release backend resources. Called once at shutdown."""

    @abstractmethod
    async def put(self, key: str, content: bytes, content_type: str) -> StoredFile:
        """
        Store `content` under `key`, replacing any previous content.

        Raises:
            ValidationError: invalid key.
            BackendUnavailableError: the backend could not be written.
        """
        ...

    @abstractmethod
    async def get(self, key: str) -> StoredFile:
        """
        Return the stored file.

        Raises:
            NotFoundError: nothing is stored under `key`.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Remove the stored file.

        Raises:
            NotFoundError: nothing is stored under `key`.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the backend is usable. Never raises."""
        ...
