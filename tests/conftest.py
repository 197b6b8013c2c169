"""
Test infrastructure for the forum comment query service.

Strategy
--------
- SQLite in-memory via aiosqlite removes the need for a running Postgres
  instance.  StaticPool makes every session share the one in-memory
  connection; a second connection would see an empty database.
- A fresh engine (and schema) is built for every test, so tests never see
  each other's rows.
- Services are built with the same ``build_comment_query_service`` wiring
  the application lifespan uses, on top of the test session factory.
- The Redis cache is a ``CacheManager`` that is never connected; it treats
  every read as a miss, so service code runs its real database path.
- Endpoint tests override ``get_comment_query_service`` because httpx's
  ASGITransport does not run the application lifespan.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from forum.cache import CacheManager
from forum.database import Base
from forum.dependencies import get_comment_query_service
from forum.main import app, build_comment_query_service
from forum.middleware import install_query_counter
from forum.models import Article, Comment, User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 2023-11-14T22:13:20Z
BASE_TIME_MS = 1_700_000_000_000


# ---------------------------------------------------------------------------
# Seeding helper
# ---------------------------------------------------------------------------

class Seeder:
    """Insert rows through the ORM and commit, returning the ORM instances."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _add(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def user(self, username: str, email: str | None = None, **kwargs) -> User:
        return await self._add(
            User(username=username, email=email or f"{username}@example.com", **kwargs)
        )

    async def article(self, title: str = "An article", permalink: str | None = None) -> Article:
        return await self._add(
            Article(title=title, permalink=permalink or f"/articles/{title.lower().replace(' ', '-')}")
        )

    async def comment(
        self,
        author: User,
        article: Article,
        content: str = "A comment",
        create_time: int = BASE_TIME_MS,
        author_email: str | None = None,
    ) -> Comment:
        return await self._add(
            Comment(
                author_id=author.id,
                author_email=author_email or author.email,
                content=content,
                create_time=create_time,
                article_id=article.id,
            )
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine_test():
    """Yield a fresh in-memory database with all tables created."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    install_query_counter(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine_test) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine_test, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(db_session) -> Seeder:
    return Seeder(db_session)


@pytest.fixture
def cache() -> CacheManager:
    """A cache that was never connected: every read is a miss."""
    return CacheManager("redis://localhost:6380/15")


@pytest.fixture
def comment_query_service(session_factory, cache):
    return build_comment_query_service(session_factory, cache)


@pytest.fixture
def drop_tables(engine_test):
    """Return a coroutine function that drops every table (storage failure)."""

    async def _drop():
        async with engine_test.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    return _drop


@pytest_asyncio.fixture
async def async_client(comment_query_service) -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    app.dependency_overrides[get_comment_query_service] = lambda: comment_query_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
