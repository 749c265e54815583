"""PriceAggregator: Combine validated quotes into a single price.

Methods:
    - average: arithmetic mean
    - median: middle value, mean of the two middle values for even counts
    - weighted_avg: mean weighted by a per-source weight table; sources
      missing from the table (or an empty table) weigh 1.0, which makes
      it identical to average

.. code-block:: python

    >>> aggregator = PriceAggregator(source_weights={"coingecko": 3.0})
    >>> aggregator.aggregate([100.0, 200.0], AggregationMethod.AVERAGE)
    150.0
    >>> aggregator.aggregate([100.0, 200.0], AggregationMethod.WEIGHTED_AVG,
    ...                      sources=["coingecko", "twelvedata"])
    125.0
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from .PriceRequest import AggregationMethod


def average(prices: Sequence[float]) -> float:
    """Arithmetic mean of a non-empty sequence.

    :raises ValueError: If prices is empty.
    """
    if not prices:
        raise ValueError("No prices to aggregate")
    return sum(prices) / len(prices)


def median(prices: Sequence[float]) -> float:
    """Median of a non-empty sequence.

    :raises ValueError: If prices is empty.
    """
    if not prices:
        raise ValueError("No prices to aggregate")
    ordered = sorted(prices)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def weighted_average(prices: Sequence[float], weights: Sequence[float]) -> float:
    """Weighted mean of a non-empty sequence.

    :param prices: Prices to combine.
    :param weights: Positive weight per price, same length as prices.
    :raises ValueError: If prices is empty or lengths differ.
    """
    if not prices:
        raise ValueError("No prices to aggregate")
    if len(weights) != len(prices):
        raise ValueError("weights must match prices in length")
    total_weight = sum(weights)
    return sum(p * w for p, w in zip(prices, weights)) / total_weight


class PriceAggregator:
    """Aggregates prices with the method requested per token.

    :ivar source_weights: Weight per source name used by weighted_avg.
    """

    DEFAULT_WEIGHT = 1.0

    def __init__(self, source_weights: Mapping[str, float] | None = None) -> None:
        """Initialize the aggregator.

        :param source_weights: Optional weight per source name (default: all 1.0).
        :raises ValueError: If any weight is not a positive finite number.
        """
        source_weights = dict(source_weights or {})
        for source, weight in source_weights.items():
            if not math.isfinite(weight) or weight <= 0:
                raise ValueError(f"Weight for source '{source}' must be positive and finite")
        self.source_weights = source_weights

    def weight_for(self, source: str) -> float:
        return self.source_weights.get(source, self.DEFAULT_WEIGHT)

    def aggregate(
        self,
        prices: Sequence[float],
        method: AggregationMethod,
        *,
        sources: Sequence[str] | None = None,
    ) -> float:
        """Aggregate prices into one value.

        :param prices: Non-empty sequence of prices.
        :param method: Aggregation method.
        :param sources: Source name per price; needed for weighted_avg lookups.
        :returns: Aggregated price.
        :raises ValueError: If prices is empty.
        """
        if method is AggregationMethod.MEDIAN:
            return median(prices)
        if method is AggregationMethod.WEIGHTED_AVG:
            if sources is None:
                weights = [self.DEFAULT_WEIGHT] * len(prices)
            else:
                weights = [self.weight_for(s) for s in sources]
            return weighted_average(prices, weights)
        return average(prices)
