from forum.repositories.base import ASCENDING, DESCENDING, Query, Repository
from forum.repositories.forum_repositories import (
    ArticleRepository,
    CommentRepository,
    UserRepository,
)

__all__ = [
    "ASCENDING",
    "DESCENDING",
    "ArticleRepository",
    "CommentRepository",
    "Query",
    "Repository",
    "UserRepository",
]
