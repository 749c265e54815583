"""CoinMarketCap fetcher.

Endpoint: https://pro-api.coinmarketcap.com/v1/cryptocurrency/quotes/latest
Rate Limit: 333 calls/day (free tier)
Token ids: uppercase tickers (e.g. "BTC")
API Key: Required
"""

from __future__ import annotations

import logging

from .base import BaseFetcher, FetcherResponseError, SourceQuote, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinMarketCapFetcher(BaseFetcher):
    """Fetcher for CoinMarketCap API.

    Free tier: 333 calls/day.
    API key is REQUIRED; without one no request is sent.
    """

    name = "coinmarketcap"
    requires_api_key = True
    BASE_URL = "https://pro-api.coinmarketcap.com"
    CONVERT = "USD"

    async def fetch(self, token_id: str) -> SourceQuote:
        """Fetch price from CoinMarketCap.

        :param token_id: Ticker symbol (e.g., "BTC"); uppercased before use.
        :returns: SourceQuote in USD.
        :raises FetcherConfigError: If no API key is configured.
        """
        api_key = self._require_api_key()
        symbol = token_id.strip().upper()

        response = await self._get(
            f"{self.BASE_URL}/v1/cryptocurrency/quotes/latest",
            params={"symbol": symbol, "convert": self.CONVERT},
            headers={"X-CMC_PRO_API_KEY": api_key, "Accept": "application/json"},
        )
        data = self._json(response)

        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            raise FetcherResponseError("No data in response", source=self.name)

        symbol_data = data["data"].get(symbol)
        # v2 returns a list of matches, take the first one
        if isinstance(symbol_data, list):
            symbol_data = symbol_data[0] if symbol_data else None
        if not isinstance(symbol_data, dict):
            raise FetcherResponseError(f"Symbol {symbol} not found", source=self.name)

        quote_data = (symbol_data.get("quote") or {}).get(self.CONVERT)
        if not isinstance(quote_data, dict) or "price" not in quote_data:
            raise FetcherResponseError(
                f"Quote {self.CONVERT} not found for {symbol}", source=self.name
            )
        return self._quote(quote_data["price"])
