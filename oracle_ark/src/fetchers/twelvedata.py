"""TwelveData fetcher (commodities, forex, crypto).

Endpoint: https://api.twelvedata.com/price?symbol={BASE}/{QUOTE}
Rate Limit: 8 calls/min (free tier)
Token ids: slash-delimited pairs (e.g. "XAU/USD", "EUR/USD", "BTC/USD")
"""

from __future__ import annotations

import logging

from .base import (
    BaseFetcher,
    FetcherHTTPError,
    FetcherResponseError,
    SourceQuote,
    register_fetcher,
)

logger = logging.getLogger(__name__)


@register_fetcher
class TwelveDataFetcher(BaseFetcher):
    """Fetcher for TwelveData API.

    API key is optional. TwelveData reports most failures with a 200
    status and a ``{"status": "error", "code": N}`` body; those are
    classified by the embedded code.
    """

    name = "twelvedata"
    BASE_URL = "https://api.twelvedata.com"

    async def fetch(self, token_id: str) -> SourceQuote:
        """Fetch price from TwelveData.

        :param token_id: Pair symbol (e.g., "XAU/USD").
        :returns: SourceQuote in the pair's quote currency.
        """
        symbol = token_id.strip().upper()
        params = {"symbol": symbol}
        if self.has_api_key:
            params["apikey"] = self.api_key

        response = await self._get(f"{self.BASE_URL}/price", params=params)
        data = self._json(response)

        if not isinstance(data, dict):
            raise FetcherResponseError("Unexpected response shape", source=self.name)

        if data.get("status") == "error":
            code = data.get("code")
            message = str(data.get("message", ""))[:200]
            if isinstance(code, int) and not isinstance(code, bool):
                raise FetcherHTTPError(code, message, source=self.name)
            raise FetcherResponseError(f"API error: {message}", source=self.name)

        if "price" not in data:
            raise FetcherResponseError(f"No price in response for {symbol}", source=self.name)
        return self._quote(data["price"])
