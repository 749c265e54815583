"""Request-level errors.

Any of these aborts the whole invocation before a single fetch is made.
"""


class RequestError(ValueError):
    """Base exception for malformed or invalid requests."""

    pass


class MalformedRequestError(RequestError):
    """Raised when the input is not valid JSON or lacks the request shape."""

    pass


class TooManyTokensError(RequestError):
    """Raised when a request names more tokens than allowed.

    :ivar count: Number of tokens in the request.
    :ivar limit: Maximum tokens per request.
    """

    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(f"Too many tokens requested: {count} (max: {limit})")


class EmptySourceListError(RequestError):
    """Raised when a token has no sources to query."""

    def __init__(self, token_id: str) -> None:
        self.token_id = token_id
        super().__init__(f"Token '{token_id}' has no sources")


class InvalidMinSourcesError(RequestError):
    """Raised when min_sources_num is below 1 or above the number of sources."""

    def __init__(self, token_id: str, min_sources_num: int, source_count: int) -> None:
        self.token_id = token_id
        self.min_sources_num = min_sources_num
        self.source_count = source_count
        super().__init__(
            f"Token '{token_id}' min_sources_num {min_sources_num} "
            f"is invalid for {source_count} source(s)"
        )
