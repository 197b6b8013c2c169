"""
Comment query service - read-side queries over comments.

Design notes
------------
- Every listing is sorted by ``create_time`` descending (ties broken by id)
  and fetches exactly one page: page count is always 1.
- Stored comments are never modified.  Each ``CommentRecord`` is turned
  into a new ``CommentView`` carrying the display fields: the creation
  time as a datetime, the author's avatar, name and profile URL, and the
  content with ``@username`` links rendered from Markdown.
- Storage failures abort the whole operation with ``ServiceError``.
  Failures while linking mentions or rendering Markdown only degrade the
  content of the affected comment (``CommentView.content_degraded``), and
  missing users or articles leave the corresponding display fields blank.
- Collaborators are awaited one at a time; nothing runs concurrently.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from forum.config import settings
from forum.exceptions import RepositoryError, ServiceError
from forum.markdowns import MarkdownRenderer
from forum.repositories import DESCENDING, ArticleRepository, CommentRepository, Query
from forum.schemas import CommentRecord, CommentView, Participant
from forum.services.avatar import avatar_url
from forum.services.user_service import UserQueryService

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_NEWEST_FIRST = (("create_time", DESCENDING),)


def to_datetime(epoch_millis: int) -> datetime:
    """Return the aware UTC datetime for *epoch_millis*."""
    return _EPOCH + timedelta(milliseconds=epoch_millis)


def link_mentions(text: str, usernames: set[str], member_url_prefix: str = "/member/") -> str:
    """
    Replace each ``@<username>`` in *text* with a link to the member page.

    Matching is literal (``@al`` also matches inside ``@alex``) and done in
    one left-to-right pass, trying longer names first at each position, so
    a name that is a prefix of another never splits the longer mention and
    inserted links are never matched again.
    """
    if not usernames:
        return text
    names = sorted(usernames, key=lambda n: (-len(n), n))
    pattern = re.compile("@(" + "|".join(re.escape(n) for n in names) + ")")
    return pattern.sub(
        lambda m: f"@<a href='{member_url_prefix}{m.group(1)}'>{m.group(1)}</a>",
        text,
    )


@dataclass(frozen=True)
class ProcessedContent:
    html: str
    degraded: bool = False


class CommentQueryService:
    def __init__(
        self,
        comments: CommentRepository,
        articles: ArticleRepository,
        user_query_service: UserQueryService,
        renderer: MarkdownRenderer,
        member_url_prefix: str = settings.MEMBER_URL_PREFIX,
    ) -> None:
        self._comments = comments
        self._articles = articles
        self._users = user_query_service
        self._renderer = renderer
        self._member_url_prefix = member_url_prefix

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_user_comments(
        self, user_id: int, page: int, page_size: int
    ) -> list[CommentView]:
        """
        Return one page of the comments written by *user_id*, newest first.

        Each comment also carries the title and permalink of the article it
        was posted on.  Returns an empty list if there are none.
        """
        query = Query(
            filters=(("author_id", user_id),),
            sorts=_NEWEST_FIRST,
            page=page,
            page_size=page_size,
        )
        try:
            records = await self._comments.fetch(query)
            ret = []
            for record in records:
                article = await self._articles.get(record.article_id)
                if article is None:
                    logger.error(
                        "Article [%s] of comment [%s] not found", record.article_id, record.id
                    )
                ret.append(
                    await self._organize(
                        record,
                        article_title=article.title if article else "",
                        article_permalink=article.permalink if article else "",
                    )
                )
            return ret
        except RepositoryError as exc:
            logger.exception("Gets user [%s] comments failed", user_id)
            raise ServiceError(f"Gets user [{user_id}] comments failed") from exc

    async def get_article_latest_participants(
        self, article_id: int, fetch_size: int
    ) -> list[Participant]:
        """
        Return the authors of the *fetch_size* newest comments on
        *article_id*, one participant per comment, newest first.

        A *fetch_size* below 1 asks for nothing and returns an empty list.
        """
        if fetch_size < 1:
            return []
        query = Query(
            filters=(("article_id", article_id),),
            sorts=_NEWEST_FIRST,
            page=1,
            page_size=fetch_size,
        )
        try:
            records = await self._comments.fetch(query)
            ret = []
            for record in records:
                commenter = await self._users.get_user_by_email(record.author_email)
                if commenter is None:
                    logger.error(
                        "Commenter [%s] of comment [%s] not found", record.author_email, record.id
                    )
                ret.append(
                    Participant(
                        name=commenter.name if commenter else "",
                        thumbnail_url=avatar_url(record.author_email),
                        url=(commenter.url or "") if commenter else "",
                        comment_id=record.id,
                    )
                )
            return ret
        except RepositoryError as exc:
            logger.exception("Gets article [%s] participants failed", article_id)
            raise ServiceError(f"Gets article [{article_id}] participants failed") from exc

    async def get_article_comments(
        self, article_id: int, page: int, page_size: int
    ) -> list[CommentView]:
        """Return one page of the comments on *article_id*, newest first."""
        query = Query(
            filters=(("article_id", article_id),),
            sorts=_NEWEST_FIRST,
            page=page,
            page_size=page_size,
        )
        try:
            records = await self._comments.fetch(query)
            return await self.organize_comments(records)
        except RepositoryError as exc:
            logger.exception("Gets article [%s] comments failed", article_id)
            raise ServiceError(f"Gets article [{article_id}] comments failed") from exc

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    async def organize_comments(self, records: list[CommentRecord]) -> list[CommentView]:
        """Organize each of *records*, keeping their order."""
        return [await self._organize(record) for record in records]

    async def _organize(self, record: CommentRecord, **extra) -> CommentView:
        """
        Build the display view of *record*.

        Raises ``RepositoryError`` when the author lookup fails; a missing
        author only leaves the author fields blank.
        """
        create_time = to_datetime(record.create_time)
        thumbnail_url = avatar_url(record.author_email)

        author = await self._users.get_user(record.author_id)
        if author is None:
            logger.error("Author [%s] of comment [%s] not found", record.author_id, record.id)

        content = await self.process_content(record.content)

        return CommentView(
            id=record.id,
            author_id=record.author_id,
            author_email=record.author_email,
            article_id=record.article_id,
            content=content.html,
            content_degraded=content.degraded,
            create_time=create_time,
            author_thumbnail_url=thumbnail_url,
            author_name=author.name if author else "",
            author_url=(author.url or "") if author else "",
            **extra,
        )

    async def process_content(self, text: str) -> ProcessedContent:
        """
        Link ``@username`` mentions in *text*, then render it as Markdown.

        Never raises: if mention resolution fails the text is rendered
        without links, and if rendering fails the linked source text is
        returned.  Either failure sets ``degraded``.
        """
        degraded = False
        try:
            usernames = await self._users.get_usernames(text)
            text = link_mentions(text, usernames, self._member_url_prefix)
        except Exception:
            logger.exception("Generates @username home URL for comment content failed")
            degraded = True

        try:
            text = self._renderer.to_html(text)
        except Exception:
            logger.exception("Markdowns comment content failed")
            degraded = True

        return ProcessedContent(html=text, degraded=degraded)
