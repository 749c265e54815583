"""CoinGecko fetcher.

Endpoint: https://api.coingecko.com/api/v3/simple/price?ids={id}&vs_currencies=usd
Rate Limit: 30 calls/min (free), higher with API key
Token ids: CoinGecko coin ids (e.g. "bitcoin", "oasis-network")
"""

from __future__ import annotations

import logging

import httpx

from .base import BaseFetcher, FetcherResponseError, SourceQuote, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinGeckoFetcher(BaseFetcher):
    """Fetcher for CoinGecko API.

    API tiers:
        - Free: api.coingecko.com (no key, 30 calls/min)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    To use a demo key, prefix with "demo:": COINGECKO_API_KEY=demo:CG-xxxxx
    Pro keys need no prefix: COINGECKO_API_KEY=xxxxx
    """

    name = "coingecko"
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"
    VS_CURRENCY = "usd"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize with optional demo: prefix handling."""
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]
        super().__init__(api_key=api_key, timeout=timeout, client=client)

    @property
    def base_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        if not self.has_api_key:
            return self.BASE_URL_FREE
        return self.BASE_URL_FREE if self._is_demo else self.BASE_URL_PRO

    @property
    def api_header(self) -> tuple[str, str] | None:
        """Return appropriate header name and value for API key."""
        if not self.has_api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return (header_name, self.api_key)

    async def fetch(self, token_id: str) -> SourceQuote:
        """Fetch price from CoinGecko.

        :param token_id: CoinGecko coin id (e.g., "bitcoin").
        :returns: SourceQuote in USD.
        """
        coin_id = token_id.strip().lower()
        headers = dict([self.api_header]) if self.api_header else None

        response = await self._get(
            f"{self.base_url}/simple/price",
            params={"ids": coin_id, "vs_currencies": self.VS_CURRENCY},
            headers=headers,
        )
        data = self._json(response)

        if not isinstance(data, dict) or not isinstance(data.get(coin_id), dict):
            raise FetcherResponseError(f"Coin {coin_id} not in response", source=self.name)
        if self.VS_CURRENCY not in data[coin_id]:
            raise FetcherResponseError(
                f"Quote {self.VS_CURRENCY} not available for {coin_id}", source=self.name
            )
        return self._quote(data[coin_id][self.VS_CURRENCY])
