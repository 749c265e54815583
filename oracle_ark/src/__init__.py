"""
Oracle Ark - Single-Invocation Price Oracle Engine

This module provides multi-source token pricing for one request at a time:
- PriceRequest: Parsed request model (tokens, sources, aggregation method)
- RequestValidator: Request-level checks that abort the invocation
- fetchers: CoinGecko, CoinMarketCap and TwelveData price sources
- PriceValidator: Minimum-source and deviation checks per token
- PriceAggregator: Average, median and weighted average
- PriceOracle: Sequential orchestrator producing one result per token
- TokenResult: Response models and size-bounded JSON encoding
"""

from .errors import (
    EmptySourceListError,
    InvalidMinSourcesError,
    MalformedRequestError,
    RequestError,
    TooManyTokensError,
)
from .PriceAggregator import PriceAggregator
from .PriceOracle import PriceOracle
from .PriceRequest import AggregationMethod, PriceRequest, SourceSpec, TokenSpec
from .PriceValidator import (
    DeviationExceededError,
    InsufficientSourcesError,
    PriceValidator,
    ValidationError,
)
from .RequestValidator import MAX_TOKENS_PER_REQUEST, parse_request, validate_request
from .TokenResult import MAX_OUTPUT_BYTES, PriceData, ResponseEnvelope, TokenResult

__all__ = [
    "AggregationMethod",
    "DeviationExceededError",
    "EmptySourceListError",
    "InsufficientSourcesError",
    "InvalidMinSourcesError",
    "MAX_OUTPUT_BYTES",
    "MAX_TOKENS_PER_REQUEST",
    "MalformedRequestError",
    "PriceAggregator",
    "PriceData",
    "PriceOracle",
    "PriceRequest",
    "PriceValidator",
    "RequestError",
    "ResponseEnvelope",
    "SourceSpec",
    "TokenResult",
    "TokenSpec",
    "TooManyTokensError",
    "ValidationError",
    "parse_request",
    "validate_request",
]
