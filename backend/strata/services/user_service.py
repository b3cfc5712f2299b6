"""
Strata Backend: User Service (Business Logic)
=============================================

What:  Registration, lookup, listing, update and deletion of users, plus the
       user avatar workflow.
How:   Talks to Repository[User] and FileStorage only through their interfaces,
       so the same code runs on the in-memory and SQL adapters alike.
Who:   Called by the /users controllers with ValidatedInput or plain ids.

Uniqueness:
    Email uniqueness is never checked with a read before the write. The
    adapter's create()/update() is the atomic check and raises ConflictError;
    the service only adds business context to that error.

Avatar Workflow (PUT /users/{id}/avatar):
    ┌──────────┐    ┌──────────────┐    ┌──────────────────┐
    │  Decode  │───▶│ FileStorage  │───▶│ Repository       │
    │  & size  │    │put(_avatar-…)│    │ update(avatar_key)│
    └──────────┘    └──────────────┘    └──────────────────┘
    If the update fails, the stored file is removed again and the update's
    error is re-raised.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Tuple

from strata.exceptions import ConflictError, NotFoundError, StrataError
from strata.interfaces import FileStorage, Repository
from strata.schemas.files import RESERVED_KEY_PREFIX, StoredFile
from strata.schemas.user import User
from strata.services.base import BaseService
from strata.services.file_service import DEFAULT_MAX_FILE_SIZE, decode_upload
from strata.services.retry import RetryPolicy
from strata.validation import ValidatedInput

logger = logging.getLogger(__name__)

EMAIL_TAKEN_MESSAGE = "Email is already registered"


def avatar_key_for(user_id: str) -> str:
    return f"{RESERVED_KEY_PREFIX}avatar-{user_id}"


def canonical_user_id(user_id: str) -> str:
    """
    Repositories store ids as 32-char lower-case hex. Dashed or upper-case
    UUIDs are reduced to that form; anything else can never match a user.

    Raises:
        NotFoundError: user_id is not a UUID
    """
    try:
        return uuid.UUID(user_id).hex
    except (TypeError, ValueError):
        raise NotFoundError(resource="user", resource_id=str(user_id)) from None


class UserService(BaseService):
    """
    Business logic for the User resource.

    Retry Policy:
        Reads (find_by_id, list, count, file get) and file put are retried on
        BackendUnavailableError. create, update and delete are attempted once.
    """

    def __init__(
        self,
        users: Repository[User],
        files: FileStorage,
        retry: RetryPolicy,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        self.users = users
        self.files = files
        self.retry = retry
        self.max_file_size = max_file_size

    async def register_user(self, data: ValidatedInput) -> User:
        """
        Create a user from validated CreateUser input.

        Raises:
            ConflictError: the email is already registered
        """
        email = data["email"].lower()
        with self.guard("register_user", email=email):
            try:
                user = await self.users.create(User(name=data["name"], email=email))
            except ConflictError as e:
                raise e.annotate(EMAIL_TAKEN_MESSAGE, email=email)
            logger.info("User registered: %s", user.id)
            return user

    async def get_user(self, user_id: str) -> User:
        user_id = canonical_user_id(user_id)
        with self.guard("get_user", user_id=user_id):
            user = await self.retry.call(self.users.find_by_id, user_id)
            if user is None:
                raise NotFoundError(resource="user", resource_id=user_id)
            return user

    async def list_users(self, limit: int, offset: int) -> Tuple[List[User], int]:
        """Return one page of users (oldest first) and the total count."""
        with self.guard("list_users", limit=limit, offset=offset):
            items = await self.retry.call(self.users.list, limit=limit, offset=offset)
            total = await self.retry.call(self.users.count)
            return items, total

    async def update_user(self, user_id: str, data: ValidatedInput) -> User:
        user_id = canonical_user_id(user_id)
        changes: Dict[str, Any] = data.as_dict()
        if "email" in changes:
            changes["email"] = changes["email"].lower()

        with self.guard("update_user", user_id=user_id):
            try:
                user = await self.users.update(user_id, changes)
            except ConflictError as e:
                raise e.annotate(EMAIL_TAKEN_MESSAGE, user_id=user_id, email=changes.get("email"))
            logger.info("User updated: %s (%s)", user_id, ", ".join(sorted(changes)))
            return user

    async def delete_user(self, user_id: str) -> None:
        """
        Delete the user record, then its avatar file.

        The avatar is cleaned up best-effort: the user is already gone at that
        point, so a storage failure is logged and not reported to the caller.
        """
        user = await self.get_user(user_id)
        with self.guard("delete_user", user_id=user.id):
            await self.users.delete(user.id)
            logger.info("User deleted: %s", user.id)

            if user.avatar_key:
                await self._discard_file(user.avatar_key)

    async def set_avatar(self, user_id: str, data: ValidatedInput) -> User:
        """
        Store the avatar file, then point the user record at it.

        A first upload that does not end with the record updated (an error or
        a cancelled request) removes the stored file again.
        """
        content, content_type = decode_upload(data, self.max_file_size)
        user = await self.get_user(user_id)
        key = avatar_key_for(user.id)

        with self.guard("set_avatar", user_id=user.id):
            if user.avatar_key == key:
                # Same key, the record already points at the new content
                await self.retry.call(self.files.put, key, content, content_type)
                return user

            try:
                await self.retry.call(self.files.put, key, content, content_type)
                updated = await self.users.update(user.id, {"avatar_key": key})
            except StrataError as e:
                await self._discard_file(key)
                raise e.annotate(avatar_key=key)
            except asyncio.CancelledError:
                await self._discard_file(key)
                raise
            logger.info("Avatar stored for user %s (%d bytes)", user.id, len(content))
            return updated

    async def get_avatar(self, user_id: str) -> StoredFile:
        user = await self.get_user(user_id)
        with self.guard("get_avatar", user_id=user.id):
            if not user.avatar_key:
                raise NotFoundError(resource="avatar", resource_id=user.id)
            return await self.retry.call(self.files.get, user.avatar_key)

    async def _discard_file(self, key: str) -> None:
        try:
            await self.files.delete(key)
        except NotFoundError:
            pass
        except StrataError as e:
            logger.warning("Could not remove file %s: %s", key, e.message)
