"""PriceOracle: Orchestrates fetching, validation and aggregation per token.

Architecture:
    - Tokens are processed one at a time, in request order
    - Within a token, sources are fetched one at a time, in request order
    - A failed source never stops the remaining sources
    - Collected quotes are validated (min sources, deviation) then aggregated
    - Every token yields exactly one TokenResult; failures become messages
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Mapping, Sequence

import httpx

from .fetchers import BaseFetcher, FetcherError, SourceQuote, get_fetcher
from .PriceAggregator import PriceAggregator
from .PriceRequest import PriceRequest, TokenSpec
from .PriceValidator import (
    DeviationExceededError,
    InsufficientSourcesError,
    PriceValidator,
)
from .TokenResult import PriceData, ResponseEnvelope, TokenResult

logger = logging.getLogger(__name__)


def format_errors(errors: Sequence[FetcherError]) -> str:
    """Render fetch errors compactly, e.g. "coingecko: HTTP 429, twelvedata: timeout"."""
    return ", ".join(str(e) for e in errors)


class PriceOracle:
    """Main orchestrator for a single price request.

    :ivar api_keys: Dict mapping source names to API keys.
    :ivar fetch_timeout: Timeout for each fetch in seconds.
    :ivar aggregator: Aggregator holding the weighted-average table.
    """

    def __init__(
        self,
        api_keys: Mapping[str, str] | None = None,
        source_weights: Mapping[str, float] | None = None,
        fetch_timeout: float = BaseFetcher.DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the price oracle.

        :param api_keys: Dict mapping source names to API keys.
        :param source_weights: Optional weight per source for weighted_avg.
        :param fetch_timeout: Timeout for each fetch (default: 10.0).
        :param client: Optional HTTP client shared by all fetchers.
        :param clock: Source of the result timestamp.
        """
        self.api_keys = dict(api_keys or {})
        self.fetch_timeout = fetch_timeout
        self.aggregator = PriceAggregator(source_weights)
        self._client = client
        self._clock = clock
        self._fetchers: dict[str, BaseFetcher] = {}

    def get_source(self, name: str) -> BaseFetcher:
        """Return the fetcher for a source, creating it on first use.

        :raises ValueError: If the source is unknown.
        """
        if name not in self._fetchers:
            self._fetchers[name] = get_fetcher(
                name,
                api_key=self.api_keys.get(name),
                timeout=self.fetch_timeout,
                client=self._client,
            )
        return self._fetchers[name]

    async def collect_quotes(
        self, token: TokenSpec
    ) -> tuple[list[SourceQuote], list[FetcherError]]:
        """Fetch every source of a token in order.

        :param token: Token to price.
        :returns: (successful quotes, fetch errors), both in fetch order.
        """
        quotes: list[SourceQuote] = []
        errors: list[FetcherError] = []

        for source in token.sources:
            fetcher = self.get_source(source.name)
            outcome = await fetcher.fetch_outcome(source.effective_token_id(token.token_id))
            if isinstance(outcome, FetcherError):
                errors.append(outcome)
            else:
                logger.debug(f"[{source.name}] {token.token_id}: {outcome.price}")
                quotes.append(outcome)

        return quotes, errors

    async def process_token(
        self, token: TokenSpec, max_deviation_percent: float
    ) -> TokenResult:
        """Produce the result for one token.

        :param token: Token to price.
        :param max_deviation_percent: Maximum allowed spread between quotes.
        :returns: TokenResult with data, message or both.
        """
        quotes, errors = await self.collect_quotes(token)

        try:
            PriceValidator(max_deviation_percent).validate(
                quotes, errors, token.min_sources_num
            )
        except InsufficientSourcesError as e:
            logger.warning(f"{token.token_id}: {e}")
            message = str(e)
            if e.errors:
                message = f"{message}. Errors: {format_errors(e.errors)}"
            return TokenResult(token=token.token_id, message=message)
        except DeviationExceededError as e:
            logger.warning(f"{token.token_id}: {e}")
            message = str(e)
            if errors:
                message = f"{message}. Errors: {format_errors(errors)}"
            return TokenResult(token=token.token_id, message=message)

        price = self.aggregator.aggregate(
            [q.price for q in quotes],
            token.aggregation_method,
            sources=[q.source_name for q in quotes],
        )
        if not math.isfinite(price):
            logger.warning(f"{token.token_id}: aggregated price {price} is not finite")
            message = "Aggregated price is not finite"
            if errors:
                message = f"{message}. Errors: {format_errors(errors)}"
            return TokenResult(token=token.token_id, message=message)

        logger.info(
            f"{token.token_id}: {price} ({token.aggregation_method.value} of "
            f"{len(quotes)}/{len(token.sources)} sources)"
        )

        return TokenResult(
            token=token.token_id,
            data=PriceData(
                price=price,
                timestamp=int(self._clock()),
                sources=tuple(q.source_name for q in quotes),
            ),
            message=f"Errors: {format_errors(errors)}" if errors else None,
        )

    async def run(self, request: PriceRequest) -> ResponseEnvelope:
        """Process every token of a validated request.

        :param request: Validated request.
        :returns: One TokenResult per token, in request order.
        """
        envelope = ResponseEnvelope()
        for token in request.tokens:
            envelope.tokens.append(
                await self.process_token(token, request.max_price_deviation_percent)
            )
        return envelope
