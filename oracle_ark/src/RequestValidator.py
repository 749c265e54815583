"""RequestValidator: Request-shape checks run before any source is queried."""

from __future__ import annotations

import logging

from .errors import EmptySourceListError, InvalidMinSourcesError, TooManyTokensError
from .PriceRequest import PriceRequest

logger = logging.getLogger(__name__)

# Maximum number of tokens allowed per request
MAX_TOKENS_PER_REQUEST = 10


def validate_request(
    request: PriceRequest,
    max_tokens: int = MAX_TOKENS_PER_REQUEST,
) -> PriceRequest:
    """Check request-level constraints.

    :param request: Parsed request.
    :param max_tokens: Maximum number of tokens per request.
    :returns: The same request, unchanged.
    :raises TooManyTokensError: If the request names more than max_tokens tokens.
    :raises EmptySourceListError: If any token has no sources.
    :raises InvalidMinSourcesError: If any token requires more sources than it lists.
    """
    if len(request.tokens) > max_tokens:
        raise TooManyTokensError(len(request.tokens), max_tokens)

    for token in request.tokens:
        if not token.sources:
            raise EmptySourceListError(token.token_id)
        if token.min_sources_num < 1 or token.min_sources_num > len(token.sources):
            raise InvalidMinSourcesError(
                token.token_id, token.min_sources_num, len(token.sources)
            )

    logger.debug(f"Request accepted: {len(request.tokens)} token(s)")
    return request


def parse_request(text: str | bytes) -> PriceRequest:
    """Parse and validate a raw JSON request.

    :param text: JSON document.
    :returns: Validated PriceRequest.
    :raises RequestError: If the request is malformed or invalid.
    """
    return validate_request(PriceRequest.from_json(text))
