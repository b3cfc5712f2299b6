"""
Strata Backend: In-Memory File Storage Adapter
==============================================

What:  FileStorage backed by a process-local dict (FILE_STORAGE_BACKEND=memory).
"""

import asyncio
from typing import Dict

from strata.exceptions import NotFoundError
from strata.interfaces.file_storage import FileStorage, validate_key
from strata.schemas.files import StoredFile


class InMemoryFileStorage(FileStorage):
    def __init__(self):
        self._files: Dict[str, StoredFile] = {}
        self._lock = asyncio.Lock()

    async def close(self) -> None:
        async with self._lock:
            self._files.clear()

    async def put(self, key: str, content: bytes, content_type: str) -> StoredFile:
        validate_key(key)
        stored = StoredFile(key=key, content_type=content_type, size=len(content), content=bytes(content))
        async with self._lock:
            self._files[key] = stored
        return stored

    async def get(self, key: str) -> StoredFile:
        validate_key(key)
        async with self._lock:
            stored = self._files.get(key)
        if stored is None:
            raise NotFoundError(resource="file", resource_id=key)
        return stored

    async def delete(self, key: str) -> None:
        validate_key(key)
        async with self._lock:
            if self._files.pop(key, None) is None:
                raise NotFoundError(resource="file", resource_id=key)

    async def health_check(self) -> bool:
        return True
