"""
Price fetchers for the supported API sources.

This module provides a unified interface for fetching token prices
from CoinGecko, CoinMarketCap and TwelveData.

Usage:
    from oracle_ark.src.fetchers import get_fetcher, get_available_fetchers

    # Get list of available fetchers
    available = get_available_fetchers()
    # ['coingecko', 'coinmarketcap', 'twelvedata']

    # Create a fetcher instance
    fetcher = get_fetcher("coingecko")
    quote = await fetcher.fetch("bitcoin")

    # For fetchers requiring API keys
    fetcher = get_fetcher("coinmarketcap", api_key="your-api-key")
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetchErrorReason,
    FetchOutcome,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    FetcherResponseError,
    FetcherTimeoutError,
    SourceQuote,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .coingecko import CoinGeckoFetcher
from .coinmarketcap import CoinMarketCapFetcher
from .twelvedata import TwelveDataFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "FetchErrorReason",
    "FetchOutcome",
    "FetcherError",
    "FetcherConfigError",
    "FetcherHTTPError",
    "FetcherResponseError",
    "FetcherTimeoutError",
    "SourceQuote",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "FETCHER_REGISTRY",
    # Fetcher implementations
    "CoinGeckoFetcher",
    "CoinMarketCapFetcher",
    "TwelveDataFetcher",
]
