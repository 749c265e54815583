"""PriceValidator: Cross-source consistency checks for one token.

Checks, in order:
    1. At least min_sources_num sources returned a quote
    2. The spread between the highest and lowest quote, as a percentage
       of the lowest, does not exceed max_price_deviation_percent

.. code-block:: python

    >>> validator = PriceValidator(max_deviation_percent=5.0)
    >>> validator.deviation_percent([100.0, 105.0])
    5.0
"""

from __future__ import annotations

from collections.abc import Sequence

from .fetchers import FetcherError, SourceQuote


class ValidationError(Exception):
    """Base exception for per-token validation failures."""

    pass


class InsufficientSourcesError(ValidationError):
    """Raised when too few sources returned a quote.

    :ivar successful: Number of successful sources.
    :ivar required: Number of sources required.
    :ivar errors: Fetch errors collected for the token, in fetch order.
    """

    def __init__(self, successful: int, required: int, errors: Sequence[FetcherError]) -> None:
        self.successful = successful
        self.required = required
        self.errors = list(errors)
        super().__init__(f"Not enough sources responded ({successful}/{required})")


class DeviationExceededError(ValidationError):
    """Raised when the quotes disagree by more than the allowed spread.

    :ivar deviation_percent: Observed spread.
    :ivar limit: Maximum allowed spread.
    """

    def __init__(self, deviation_percent: float, limit: float) -> None:
        self.deviation_percent = deviation_percent
        self.limit = limit
        super().__init__(
            f"Price deviation too high: {deviation_percent:.2f}% (max: {limit:.2f}%)"
        )


class PriceValidator:
    """Validates the quotes collected for a token.

    :ivar max_deviation_percent: Maximum allowed spread between quotes.
    """

    def __init__(self, max_deviation_percent: float) -> None:
        if max_deviation_percent < 0:
            raise ValueError("max_deviation_percent must not be negative")
        self.max_deviation_percent = max_deviation_percent

    @staticmethod
    def deviation_percent(prices: Sequence[float]) -> float:
        """Spread between max and min price as a percentage of the min.

        Fewer than two prices have no spread.
        """
        if len(prices) < 2:
            return 0.0
        low, high = min(prices), max(prices)
        return (high - low) * 100 / low

    def validate(
        self,
        quotes: Sequence[SourceQuote],
        errors: Sequence[FetcherError],
        min_sources: int,
    ) -> None:
        """Run both checks.

        :param quotes: Successful quotes in fetch order.
        :param errors: Failed fetches in fetch order.
        :param min_sources: Minimum successful sources required.
        :raises InsufficientSourcesError: If len(quotes) < min_sources.
        :raises DeviationExceededError: If the spread exceeds the limit.
        """
        if len(quotes) < min_sources:
            raise InsufficientSourcesError(len(quotes), min_sources, errors)

        deviation = self.deviation_percent([q.price for q in quotes])
        if deviation > self.max_deviation_percent:
            raise DeviationExceededError(deviation, self.max_deviation_percent)
