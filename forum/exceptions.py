class RepositoryError(Exception):
    """Raised by a repository when the underlying store fails."""


class ServiceError(Exception):
    """
    Service-level failure surfaced to callers.

    The originating exception is chained (``raise ServiceError(...) from
    exc``) and available as ``__cause__``.
    """
