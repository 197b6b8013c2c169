"""
User service tests: mention resolution against real accounts and the
cache-aside user lookups.
"""
import pytest

from forum.cache import CacheManager
from forum.exceptions import ServiceError
from forum.repositories import UserRepository
from forum.services.user_service import UserQueryService, extract_mention_candidates


class DictCache:
    """In-memory stand-in for CacheManager with the same get/set surface."""

    def __init__(self) -> None:
        self.data: dict = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ttl=None):
        self.data[key] = value


# ---------------------------------------------------------------------------
# Mention candidates
# ---------------------------------------------------------------------------

def test_extract_mention_candidates():
    assert extract_mention_candidates("@alice hi @bob_2, and @alice again") == {"alice", "bob_2"}
    assert extract_mention_candidates("no mentions here") == set()


# ---------------------------------------------------------------------------
# get_usernames
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_usernames_keeps_existing_users_only(seed, session_factory):
    await seed.user("alice")
    await seed.user("bob")
    service = UserQueryService(UserRepository(session_factory))

    names = await service.get_usernames("@alice meet @ghost, cc x@y.com")

    assert names == {"alice"}


@pytest.mark.asyncio
async def test_get_usernames_without_mentions_skips_storage(session_factory, drop_tables):
    await drop_tables()
    service = UserQueryService(UserRepository(session_factory))
    assert await service.get_usernames("plain text") == set()


@pytest.mark.asyncio
async def test_get_usernames_raises_service_error(session_factory, drop_tables):
    await drop_tables()
    service = UserQueryService(UserRepository(session_factory))
    with pytest.raises(ServiceError):
        await service.get_usernames("@alice")


# ---------------------------------------------------------------------------
# Cached lookups
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_user_populates_cache(seed, session_factory):
    alice = await seed.user("alice", url="https://alice.example.com")
    cache = DictCache()
    service = UserQueryService(UserRepository(session_factory), cache)

    user = await service.get_user(alice.id)

    assert user.username == "alice"
    assert cache.data[f"users:id:{alice.id}"]["url"] == "https://alice.example.com"


@pytest.mark.asyncio
async def test_get_user_served_from_cache(seed, session_factory, drop_tables):
    alice = await seed.user("alice")
    cache = DictCache()
    service = UserQueryService(UserRepository(session_factory), cache)
    await service.get_user_by_email(alice.email)

    # The store is gone; the cached record is still returned.
    await drop_tables()
    user = await service.get_user_by_email(alice.email)

    assert user is not None
    assert user.id == alice.id


@pytest.mark.asyncio
async def test_missing_user_is_not_cached(session_factory):
    cache = DictCache()
    service = UserQueryService(UserRepository(session_factory), cache)

    assert await service.get_user(12345) is None
    assert cache.data == {}


@pytest.mark.asyncio
async def test_disconnected_cache_falls_through(seed, session_factory):
    alice = await seed.user("alice")
    cache = CacheManager("redis://localhost:6380/15")
    service = UserQueryService(UserRepository(session_factory), cache)

    assert (await service.get_user(alice.id)).username == "alice"
    assert cache.stats == {"connected": False, "hits": 0, "misses": 1, "hit_rate": 0.0}


# ---------------------------------------------------------------------------
# Stale cache entries
# ---------------------------------------------------------------------------

class StaleCache(DictCache):
    """Serves entries written by an older UserRecord layout (no username)."""

    async def get(self, key):
        return {"id": 1, "email": "alice@example.com"}


@pytest.mark.asyncio
async def test_stale_cache_entry_falls_back_to_database(seed, session_factory):
    alice = await seed.user("alice", "alice@example.com")
    cache = StaleCache()
    service = UserQueryService(UserRepository(session_factory), cache)

    by_id = await service.get_user(alice.id)
    by_email = await service.get_user_by_email("alice@example.com")

    assert by_id.username == "alice"
    assert by_email.username == "alice"
    # The stale entry is replaced with the current layout.
    assert cache.data[f"users:id:{alice.id}"]["username"] == "alice"


@pytest.mark.asyncio
async def test_undecodable_redis_value_is_a_miss():
    class FakeRedis:
        async def get(self, key):
            return "{not json"

    cache = CacheManager("redis://localhost:6380/15")
    cache._redis = FakeRedis()

    assert await cache.get("users:id:1") is None
    assert cache.stats["misses"] == 1


# ---------------------------------------------------------------------------
# Dotted and dashed usernames
# ---------------------------------------------------------------------------

def test_extract_mention_candidates_with_separators():
    assert extract_mention_candidates("hi @ann.lee-2.") == {"ann.lee-2", "ann.lee", "ann"}


@pytest.mark.asyncio
async def test_get_usernames_resolves_dotted_names(seed, session_factory):
    await seed.user("ann.lee")
    await seed.user("bob")
    service = UserQueryService(UserRepository(session_factory))

    names = await service.get_usernames("thanks @ann.lee and @bob.")

    assert names == {"ann.lee", "bob"}
