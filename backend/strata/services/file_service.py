"""
Strata Backend: File Service
============================

What:  Upload, download and removal of stored files by key.
How:   Decodes the base64 payload from ValidatedInput, enforces MAX_FILE_SIZE
       and delegates to whichever FileStorage adapter is bound.
Who:   Called by the /files controllers; `decode_upload` is shared with
       UserService.set_avatar.

Size Rule:
    The limit applies to the decoded bytes, which only exist after decoding,
    so an oversized upload is a ServiceError (422) rather than a schema
    violation.
"""

import base64
import binascii
import logging
from typing import Tuple

from strata.exceptions import NotFoundError, ServiceError, ValidationError
from strata.interfaces import FileStorage
from strata.schemas.files import StoredFile
from strata.services.base import BaseService
from strata.services.retry import RetryPolicy
from strata.validation import ValidatedInput

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


def decode_upload(data: ValidatedInput, max_file_size: int) -> Tuple[bytes, str]:
    """
    Turn an Upload payload into (content, content_type).

    Raises:
        ValidationError: `content` is not valid base64
        ServiceError:    decoded content is larger than `max_file_size`
    """
    try:
        content = base64.b64decode(data["content"], validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(
            details={"content": "must be valid base64"},
            context={"decode_error": str(e)},
        ) from e

    if not content:
        raise ValidationError(details={"content": "must not decode to an empty file"})

    if len(content) > max_file_size:
        max_mb = max_file_size / (1024 * 1024)
        raise ServiceError(
            message=f"File is too large. Maximum size is {max_mb:g}MB.",
            context={"size": len(content), "max_file_size": max_file_size},
        )

    return content, data["content_type"]


class FileService(BaseService):
    """
    Args:
        files:         Bound FileStorage adapter
        retry:         Retry policy for idempotent storage calls
        max_file_size: Upper bound in bytes for decoded uploads
    """

    def __init__(
        self,
        files: FileStorage,
        retry: RetryPolicy,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        self.files = files
        self.retry = retry
        self.max_file_size = max_file_size

    async def upload(self, key: str, data: ValidatedInput) -> StoredFile:
        with self.guard("upload", key=key):
            content, content_type = decode_upload(data, self.max_file_size)
            # put() overwrites, so repeating it is safe
            stored = await self.retry.call(self.files.put, key, content, content_type)
            logger.info("Uploaded %s (%d bytes, %s)", key, stored.size, content_type)
            return stored

    async def download(self, key: str) -> StoredFile:
        with self.guard("download", key=key):
            return await self.retry.call(self.files.get, key)

    async def remove(self, key: str) -> None:
        with self.guard("remove", key=key):
            try:
                await self.files.delete(key)
            except NotFoundError as e:
                raise e.annotate(f"File '{key}' does not exist", key=key)
            logger.info("Removed %s", key)
