from datetime import datetime

from pydantic import BaseModel, ConfigDict


# --- Stored records (immutable snapshots of repository rows) ---

class UserRecord(BaseModel):
    id: int
    username: str
    email: str
    display_name: str | None = None
    url: str | None = None
    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def name(self) -> str:
        """Name shown next to the user's comments."""
        return self.display_name or self.username


class ArticleRecord(BaseModel):
    id: int
    title: str
    permalink: str
    model_config = ConfigDict(from_attributes=True, frozen=True)


class CommentRecord(BaseModel):
    id: int
    author_id: int
    author_email: str
    content: str
    create_time: int  # epoch milliseconds
    article_id: int
    model_config = ConfigDict(from_attributes=True, frozen=True)


# --- Display records ---

class CommentView(BaseModel):
    """A comment ready for display, built from a ``CommentRecord``."""

    id: int
    author_id: int
    author_email: str
    article_id: int
    content: str  # rendered HTML
    create_time: datetime
    author_name: str = ""
    author_url: str = ""
    author_thumbnail_url: str
    content_degraded: bool = False
    # Only filled in when listing a member's own comments.
    article_title: str | None = None
    article_permalink: str | None = None
    model_config = ConfigDict(frozen=True)


class Participant(BaseModel):
    """A recent commenter on an article."""

    name: str = ""
    thumbnail_url: str
    url: str = ""
    comment_id: int
    model_config = ConfigDict(frozen=True)


# --- Health ---

class HealthResponse(BaseModel):
    status: str
    version: str
    cache_info: dict = {}
