import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forum.cache import CacheManager
from forum.config import settings
from forum.database import async_session, engine
from forum.markdowns import MarkdownRenderer
from forum.middleware import TimingMiddleware
from forum.repositories import ArticleRepository, CommentRepository, UserRepository
from forum.routers import comments
from forum.schemas import HealthResponse
from forum.services.comment_service import CommentQueryService
from forum.services.user_service import UserQueryService

VERSION = "1.0.0"

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


def build_comment_query_service(
    session_factory: async_sessionmaker[AsyncSession],
    cache: CacheManager | None = None,
) -> CommentQueryService:
    """Wire repositories and collaborators into a ``CommentQueryService``."""
    users = UserQueryService(UserRepository(session_factory), cache)
    return CommentQueryService(
        CommentRepository(session_factory),
        ArticleRepository(session_factory),
        users,
        MarkdownRenderer(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    cache = CacheManager(settings.REDIS_URL)
    await cache.connect()  # works without Redis
    app.state.cache = cache
    app.state.comment_query_service = build_comment_query_service(async_session, cache)
    logger.info("Forum comment service started (%s)", settings.APP_ENV)
    yield
    await cache.disconnect()
    await engine.dispose()


app = FastAPI(
    title="Forum Comment Query API",
    description="Read-side queries over forum comments, rendered for display",
    version=VERSION,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Routers
app.include_router(comments.router)


@app.get("/health", response_model=HealthResponse)
async def health(request: Request):
    cache = getattr(request.app.state, "cache", None)
    return HealthResponse(
        status="healthy",
        version=VERSION,
        cache_info=cache.stats if cache else {},
    )
