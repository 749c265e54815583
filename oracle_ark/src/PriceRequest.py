"""PriceRequest: Parsed form of the JSON request read from stdin.

.. code-block:: python

    >>> request = PriceRequest.from_dict({
    ...     "tokens": [{"token_id": "bitcoin", "sources": [{"name": "coingecko"}]}],
    ...     "max_price_deviation_percent": 5.0,
    ... })
    >>> request.tokens[0].sources[0].effective_token_id("bitcoin")
    'bitcoin'
    >>> request.tokens[0].aggregation_method
    <AggregationMethod.AVERAGE: 'average'>
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import InvalidMinSourcesError, MalformedRequestError

SUPPORTED_SOURCES = ("coingecko", "coinmarketcap", "twelvedata")


class AggregationMethod(str, Enum):
    """Method used to combine prices from multiple sources."""

    AVERAGE = "average"
    MEDIAN = "median"
    WEIGHTED_AVG = "weighted_avg"


@dataclass(frozen=True)
class SourceSpec:
    """One source to query for a token.

    :ivar name: Source name (one of SUPPORTED_SOURCES).
    :ivar source_token_id: Source-specific id, or None to reuse the token id.
    """

    name: str
    source_token_id: str | None = None

    def effective_token_id(self, token_id: str) -> str:
        """Return the id to send to the source."""
        return self.source_token_id if self.source_token_id is not None else token_id

    @classmethod
    def from_dict(cls, raw: Any) -> SourceSpec:
        if not isinstance(raw, dict):
            raise MalformedRequestError("Source entry must be an object")
        name = raw.get("name")
        if not isinstance(name, str):
            raise MalformedRequestError("Source 'name' must be a string")
        name = name.strip().lower()
        if name not in SUPPORTED_SOURCES:
            raise MalformedRequestError(
                f"Unknown source '{name}'. Available: {', '.join(SUPPORTED_SOURCES)}"
            )
        source_token_id = raw.get("token_id")
        if source_token_id is not None and not isinstance(source_token_id, str):
            raise MalformedRequestError(f"Source '{name}' token_id must be a string or null")
        return cls(name=name, source_token_id=source_token_id)


@dataclass(frozen=True)
class TokenSpec:
    """A token to price and how to combine its sources.

    :ivar token_id: Token identifier echoed back in the response.
    :ivar sources: Ordered sources to query.
    :ivar aggregation_method: How to combine successful quotes.
    :ivar min_sources_num: Minimum successful sources for a result.
    """

    token_id: str
    sources: tuple[SourceSpec, ...]
    aggregation_method: AggregationMethod = AggregationMethod.AVERAGE
    min_sources_num: int = 1

    @classmethod
    def from_dict(cls, raw: Any) -> TokenSpec:
        if not isinstance(raw, dict):
            raise MalformedRequestError("Token entry must be an object")

        token_id = raw.get("token_id")
        if not isinstance(token_id, str) or not token_id:
            raise MalformedRequestError("Token 'token_id' must be a non-empty string")

        sources = raw.get("sources")
        if not isinstance(sources, list):
            raise MalformedRequestError(f"Token '{token_id}' sources must be a list")

        method = raw.get("aggregation_method", AggregationMethod.AVERAGE.value)
        try:
            aggregation_method = AggregationMethod(method)
        except ValueError as e:
            raise MalformedRequestError(
                f"Token '{token_id}' has unknown aggregation_method {method!r}"
            ) from e

        min_sources_num = raw.get("min_sources_num", 1)
        if isinstance(min_sources_num, bool) or not isinstance(min_sources_num, int):
            raise MalformedRequestError(f"Token '{token_id}' min_sources_num must be an integer")
        if min_sources_num < 1:
            raise InvalidMinSourcesError(token_id, min_sources_num, len(sources))

        return cls(
            token_id=token_id,
            sources=tuple(SourceSpec.from_dict(s) for s in sources),
            aggregation_method=aggregation_method,
            min_sources_num=min_sources_num,
        )


@dataclass(frozen=True)
class PriceRequest:
    """A batch of token price requests.

    :ivar tokens: Ordered token specs.
    :ivar max_price_deviation_percent: Maximum allowed spread between quotes.
    """

    tokens: tuple[TokenSpec, ...]
    max_price_deviation_percent: float

    @classmethod
    def from_dict(cls, raw: Any) -> PriceRequest:
        """Build a request from decoded JSON.

        :raises MalformedRequestError: If the document does not have the request shape.
        """
        if not isinstance(raw, dict):
            raise MalformedRequestError("Request must be a JSON object")

        tokens = raw.get("tokens")
        if not isinstance(tokens, list) or not tokens:
            raise MalformedRequestError("Request 'tokens' must be a non-empty list")

        deviation = raw.get("max_price_deviation_percent")
        if isinstance(deviation, bool) or not isinstance(deviation, (int, float)):
            raise MalformedRequestError("'max_price_deviation_percent' must be a number")
        if not math.isfinite(deviation) or deviation < 0:
            raise MalformedRequestError("'max_price_deviation_percent' must be >= 0")

        return cls(
            tokens=tuple(TokenSpec.from_dict(t) for t in tokens),
            max_price_deviation_percent=float(deviation),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> PriceRequest:
        """Parse a request from a JSON document.

        :raises MalformedRequestError: On invalid JSON or request shape.
        """
        try:
            raw = json.loads(text)
        except ValueError as e:
            raise MalformedRequestError(f"Invalid JSON: {e}") from e
        return cls.from_dict(raw)
