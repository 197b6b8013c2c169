import hashlib
from urllib.parse import quote

from forum.config import settings


def avatar_url(email: str) -> str:
    """
    Return the avatar URL for *email*.

    The default commenter placeholder gets the static thumbnail; everyone
    else gets a Gravatar URL keyed on the MD5 of the email exactly as
    stored, falling back to the static thumbnail.
    """
    default_thumbnail = settings.default_thumbnail_url
    if email == settings.DEFAULT_COMMENTER_EMAIL:
        return default_thumbnail

    email_hash = hashlib.md5(email.encode("utf-8")).hexdigest()
    return (
        f"http://{settings.AVATAR_HOST}/avatar/{email_hash}"
        f"?s=140&d={quote(default_thumbnail, safe='')}"
    )
