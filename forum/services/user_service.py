"""
User service - user record lookups and ``@username`` mention resolution.

Single-user lookups go through the Redis cache-aside layer because comment
pages look up the same few authors over and over.  Mention resolution always
hits the database with one batched query so that a renamed or deleted
account is never linked.
"""
import logging
import re

from pydantic import ValidationError

from forum.cache import CacheManager
from forum.config import settings
from forum.exceptions import RepositoryError, ServiceError
from forum.repositories import UserRepository
from forum.schemas import UserRecord

logger = logging.getLogger(__name__)

# Usernames may contain "." and "-" between word characters.
MENTION_RE = re.compile(r"@(\w+(?:[.-]\w+)*)")
_SEPARATOR_RE = re.compile(r"[.-]")


def extract_mention_candidates(text: str) -> set[str]:
    """
    Return every name written as ``@name`` in *text*, valid or not.

    ``@ann.lee`` yields both ``ann.lee`` and ``ann``, so a mention followed
    by a dotted word still resolves to the shorter account.
    """
    candidates = set()
    for name in MENTION_RE.findall(text):
        candidates.add(name)
        for sep in _SEPARATOR_RE.finditer(name):
            candidates.add(name[: sep.start()])
    return candidates


class UserQueryService:
    def __init__(
        self,
        users: UserRepository,
        cache: CacheManager | None = None,
        cache_ttl: int = settings.CACHE_TTL_USER,
    ) -> None:
        self._users = users
        self._cache = cache
        self._cache_ttl = cache_ttl

    async def _cached(self, key: str) -> UserRecord | None:
        if self._cache is None:
            return None
        cached = await self._cache.get(key)
        if not cached:
            return None
        try:
            return UserRecord.model_validate(cached)
        except ValidationError as exc:
            # Written by an older UserRecord; fall through to the database.
            logger.debug("Discarding stale cache entry %r: %s", key, exc)
            return None

    async def _remember(self, key: str, user: UserRecord | None) -> None:
        if self._cache is not None and user is not None:
            await self._cache.set(key, user.model_dump(), ttl=self._cache_ttl)

    async def get_user(self, user_id: int) -> UserRecord | None:
        """
        Return the user with id *user_id*, or None when there is none.

        Raises ``RepositoryError`` when the store fails.
        """
        key = f"users:id:{user_id}"
        user = await self._cached(key)
        if user is None:
            user = await self._users.get(user_id)
            await self._remember(key, user)
        return user

    async def get_user_by_email(self, email: str) -> UserRecord | None:
        """
        Return the user registered with *email*, or None when there is none.

        Raises ``RepositoryError`` when the store fails.
        """
        key = f"users:email:{email}"
        user = await self._cached(key)
        if user is None:
            user = await self._users.get_by_email(email)
            await self._remember(key, user)
        return user

    async def get_usernames(self, text: str) -> set[str]:
        """
        Return the usernames of existing users mentioned in *text*.

        Raises ``ServiceError`` when the user store cannot be queried.
        """
        candidates = extract_mention_candidates(text)
        if not candidates:
            return set()

        try:
            users = await self._users.get_by_usernames(candidates)
        except RepositoryError as exc:
            logger.exception("Resolves mentioned usernames failed")
            raise ServiceError("Resolves mentioned usernames failed") from exc

        found = {u.username for u in users}
        for name in sorted(candidates - found):
            logger.debug("Not found user by name [%s]", name)
        return found
