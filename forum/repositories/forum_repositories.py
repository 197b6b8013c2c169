from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from forum.exceptions import RepositoryError
from forum.models import Article, Comment, User
from forum.repositories.base import Repository
from forum.schemas import ArticleRecord, CommentRecord, UserRecord


class CommentRepository(Repository[Comment, CommentRecord]):
    model = Comment
    record = CommentRecord


class ArticleRepository(Repository[Article, ArticleRecord]):
    model = Article
    record = ArticleRecord


class UserRepository(Repository[User, UserRecord]):
    model = User
    record = UserRecord

    async def get_by_email(self, email: str) -> UserRecord | None:
        try:
            records = await self._all(select(User).where(User.email == email))
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Gets user by email [{email}] failed") from exc
        return records[0] if records else None

    async def get_by_usernames(self, usernames: Iterable[str]) -> list[UserRecord]:
        """Return the users whose username is in *usernames* (one query)."""
        names = set(usernames)
        if not names:
            return []
        try:
            return await self._all(select(User).where(User.username.in_(names)))
        except SQLAlchemyError as exc:
            raise RepositoryError("Gets users by usernames failed") from exc
