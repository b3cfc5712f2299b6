"""
Strata Backend: Local Disk File Storage Adapter
===============================================

What:  FileStorage implementation that writes files under STORAGE_ROOT.
How:   Async file I/O via aiofiles. Content lives at <root>/<key>; the content
       type lives in a JSON sidecar at <root>/.meta/<key>.json. Keys never
       start with '.', so a key can never address the sidecar directory.
Who:   Bound when FILE_STORAGE_BACKEND=local (default).

Directory Structure:
    storage/
    ├── .meta/
    │   └── _avatar-3f2a….json    {"content_type": "image/png"}
    └── _avatar-3f2a…

Error Translation:
    FileNotFoundError   → NotFoundError
    any other OSError   → BackendUnavailableError
"""

import json
import logging
import os
from pathlib import Path
from typing import Tuple

import aiofiles
import aiofiles.os

from strata.exceptions import BackendUnavailableError, NotFoundError, ValidationError
from strata.interfaces.file_storage import FileStorage, validate_key
from strata.schemas.files import StoredFile

logger = logging.getLogger(__name__)

META_DIR = ".meta"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class LocalFileStorage(FileStorage):
    """
    Files on the local file system.

    Args:
        storage_root: Directory that holds every stored file. Created on start().
    """

    def __init__(self, storage_root: str):
        self.storage_root = Path(storage_root).resolve()

    async def start(self) -> None:
        try:
            (self.storage_root / META_DIR).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendUnavailableError(
                message="File storage is not writable",
                context={"storage_root": str(self.storage_root), "os_error": str(e)},
            ) from e
        logger.info("LocalFileStorage initialized with storage_root=%s", self.storage_root)

    def _paths(self, key: str) -> Tuple[Path, Path]:
        validate_key(key)
        content_path = (self.storage_root / key).resolve()
        # The key pattern already excludes separators; this guards the invariant
        if content_path.parent != self.storage_root:
            raise ValidationError(message="Invalid storage key", details={"key": "escapes storage root"})
        return content_path, self.storage_root / META_DIR / f"{key}.json"

    async def put(self, key: str, content: bytes, content_type: str) -> StoredFile:
        content_path, meta_path = self._paths(key)
        try:
            meta_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(content_path, "wb") as f:
                await f.write(content)
            async with aiofiles.open(meta_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps({"content_type": content_type}))
        except OSError as e:
            logger.error("Failed to store file %s: %s", key, e)
            raise BackendUnavailableError(
                message="Failed to save the file. Please try again.",
                context={"key": key, "os_error": str(e)},
            ) from e

        logger.info("File stored: %s (%d bytes)", key, len(content))
        return StoredFile(key=key, content_type=content_type, size=len(content), content=content)

    async def get(self, key: str) -> StoredFile:
        content_path, meta_path = self._paths(key)
        try:
            async with aiofiles.open(content_path, "rb") as f:
                content = await f.read()
        except FileNotFoundError as e:
            raise NotFoundError(resource="file", resource_id=key) from e
        except OSError as e:
            raise BackendUnavailableError(
                message="Failed to read the file. Please try again.",
                context={"key": key, "os_error": str(e)},
            ) from e

        content_type = await self._read_content_type(meta_path)
        return StoredFile(key=key, content_type=content_type, size=len(content), content=content)

    async def _read_content_type(self, meta_path: Path) -> str:
        try:
            async with aiofiles.open(meta_path, "r", encoding="utf-8") as f:
                meta = json.loads(await f.read())
        except FileNotFoundError:
            return DEFAULT_CONTENT_TYPE
        except (OSError, ValueError) as e:
            logger.warning("Unreadable metadata %s: %s", meta_path.name, e)
            return DEFAULT_CONTENT_TYPE
        content_type = meta.get("content_type") if isinstance(meta, dict) else None
        if not isinstance(content_type, str) or not content_type:
            logger.warning("Metadata %s has no usable content_type", meta_path.name)
            return DEFAULT_CONTENT_TYPE
        return content_type

    async def delete(self, key: str) -> None:
        content_path, meta_path = self._paths(key)
        try:
            await aiofiles.os.remove(content_path)
        except FileNotFoundError as e:
            raise NotFoundError(resource="file", resource_id=key) from e
        except OSError as e:
            raise BackendUnavailableError(
                message="Failed to delete the file. Please try again.",
                context={"key": key, "os_error": str(e)},
            ) from e

        try:
            await aiofiles.os.remove(meta_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove metadata for %s: %s", key, e)
        logger.info("File deleted: %s", key)

    async def health_check(self) -> bool:
        return self.storage_root.is_dir() and os.access(self.storage_root, os.W_OK)
