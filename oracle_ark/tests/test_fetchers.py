"""Unit tests for the price fetchers, using httpx.MockTransport."""

import asyncio
import time

import httpx
import pytest

from oracle_ark.src.fetchers import (
    BaseFetcher,
    CoinGeckoFetcher,
    CoinMarketCapFetcher,
    FetchErrorReason,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    FetcherResponseError,
    FetcherTimeoutError,
    SourceQuote,
    TwelveDataFetcher,
    get_available_fetchers,
    get_fetcher,
)


class Recorder:
    """MockTransport handler returning a canned response and recording requests."""

    def __init__(self, status_code: int = 200, json=None, content: bytes | None = None):
        self.status_code = status_code
        self.json = json
        self.content = content
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.json)


def fetch(
    fetcher_cls,
    handler,
    token_id: str,
    api_key: str | None = None,
    timeout: float | None = None,
):
    """Run fetch_outcome against a mocked transport."""

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = fetcher_cls(api_key=api_key, timeout=timeout, client=client)
            return await fetcher.fetch_outcome(token_id)

    return asyncio.run(run())


class TestRegistry:
    """Test fetcher registration."""

    def test_available_fetchers(self) -> None:
        assert get_available_fetchers() == ["coingecko", "coinmarketcap", "twelvedata"]

    def test_get_fetcher(self) -> None:
        fetcher = get_fetcher("twelvedata", api_key="k", timeout=3.0)
        assert isinstance(fetcher, TwelveDataFetcher)
        assert fetcher.api_key == "k"
        assert fetcher.timeout == 3.0

    def test_default_timeout(self) -> None:
        assert get_fetcher("coingecko").timeout == 10.0

    def test_unknown_fetcher(self) -> None:
        with pytest.raises(ValueError, match="Unknown fetcher 'binance'"):
            get_fetcher("binance")


class TestFetchErrors:
    """Test error classification and rendering."""

    def test_http_error(self) -> None:
        error = FetcherHTTPError(429, "Too Many Requests", source="coingecko")
        assert error.reason is FetchErrorReason.HTTP_STATUS
        assert error.status_code == 429
        assert str(error) == "coingecko: HTTP 429"

    def test_config_error_is_unauthorized(self) -> None:
        error = FetcherConfigError("API key required", source="coinmarketcap")
        assert isinstance(error, FetcherHTTPError)
        assert error.status_code == 401
        assert str(error) == "coinmarketcap: HTTP 401"

    def test_other_reasons(self) -> None:
        assert str(FetcherTimeoutError("t", source="a")) == "a: timeout"
        assert str(FetcherResponseError("m", source="a")) == "a: malformed response"
        assert str(FetcherError("n", source="a")) == "a: network error"
        assert FetcherError("n").reason is FetchErrorReason.NETWORK


class KeyedFetcher(BaseFetcher):
    """Unregistered fetcher that declares a key requirement but never checks it itself."""

    name = "keyed"
    requires_api_key = True

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.fetched: list[str] = []

    async def fetch(self, token_id: str) -> SourceQuote:
        self.fetched.append(token_id)
        return self._quote(1.0)


class TestBaseFetcher:
    """Test behaviour shared by every fetcher."""

    def test_key_requirement_enforced_before_fetch(self) -> None:
        fetcher = KeyedFetcher()
        outcome = asyncio.run(fetcher.fetch_outcome("bitcoin"))

        assert isinstance(outcome, FetcherConfigError)
        assert str(outcome) == "keyed: HTTP 401"
        assert fetcher.fetched == []

    def test_key_requirement_met(self) -> None:
        fetcher = KeyedFetcher(api_key="k")
        outcome = asyncio.run(fetcher.fetch_outcome("bitcoin"))

        assert isinstance(outcome, SourceQuote)
        assert fetcher.fetched == ["bitcoin"]

    def test_keyed_fetcher_not_registered(self) -> None:
        assert "keyed" not in get_available_fetchers()

    def test_quotes_compare_by_price_and_source(self) -> None:
        """A quote is only its price and source, so repeated fetches compare equal."""
        first = asyncio.run(KeyedFetcher(api_key="k").fetch_outcome("bitcoin"))
        second = asyncio.run(KeyedFetcher(api_key="k").fetch_outcome("bitcoin"))

        assert first == second == SourceQuote(price=1.0, source_name="keyed")


class TestCoinGeckoFetcher:
    """Test CoinGecko request construction and parsing."""

    def test_success(self) -> None:
        handler = Recorder(json={"bitcoin": {"usd": 110836}})
        outcome = fetch(CoinGeckoFetcher, handler, "bitcoin")

        assert isinstance(outcome, SourceQuote)
        assert outcome.price == 110836.0
        assert outcome.source_name == "coingecko"

        request = handler.requests[0]
        assert request.url.host == "api.coingecko.com"
        assert request.url.path == "/api/v3/simple/price"
        assert request.url.params["ids"] == "bitcoin"
        assert request.url.params["vs_currencies"] == "usd"
        assert "x-cg-pro-api-key" not in request.headers

    def test_pro_key(self) -> None:
        handler = Recorder(json={"bitcoin": {"usd": 1.0}})
        fetch(CoinGeckoFetcher, handler, "bitcoin", api_key="secret")

        request = handler.requests[0]
        assert request.url.host == "pro-api.coingecko.com"
        assert request.headers["x-cg-pro-api-key"] == "secret"

    def test_demo_key(self) -> None:
        handler = Recorder(json={"bitcoin": {"usd": 1.0}})
        fetch(CoinGeckoFetcher, handler, "bitcoin", api_key="demo:CG-abc")

        request = handler.requests[0]
        assert request.url.host == "api.coingecko.com"
        assert request.headers["x-cg-demo-api-key"] == "CG-abc"

    def test_http_status(self) -> None:
        outcome = fetch(CoinGeckoFetcher, Recorder(status_code=429, json={}), "bitcoin")

        assert isinstance(outcome, FetcherHTTPError)
        assert outcome.status_code == 429
        assert outcome.source == "coingecko"

    def test_coin_missing(self) -> None:
        outcome = fetch(CoinGeckoFetcher, Recorder(json={}), "bitcoin")
        assert isinstance(outcome, FetcherResponseError)

    def test_unparsable_body(self) -> None:
        outcome = fetch(CoinGeckoFetcher, Recorder(content=b"<html>oops</html>"), "bitcoin")
        assert isinstance(outcome, FetcherResponseError)
        assert outcome.reason is FetchErrorReason.MALFORMED_RESPONSE

    def test_non_positive_price(self) -> None:
        outcome = fetch(CoinGeckoFetcher, Recorder(json={"bitcoin": {"usd": 0}}), "bitcoin")
        assert isinstance(outcome, FetcherResponseError)

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        outcome = fetch(CoinGeckoFetcher, handler, "bitcoin")
        assert isinstance(outcome, FetcherTimeoutError)
        assert str(outcome) == "coingecko: timeout"

    def test_slow_body_hits_total_timeout(self) -> None:
        """A body trickling in under the per-read timeout still times out overall."""

        async def trickle():
            for _ in range(50):
                await asyncio.sleep(0.02)
                yield b" "
            yield b'{"bitcoin": {"usd": 110836}}'

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=trickle())

        started = time.monotonic()
        outcome = fetch(CoinGeckoFetcher, handler, "bitcoin", timeout=0.1)

        assert isinstance(outcome, FetcherTimeoutError)
        assert str(outcome) == "coingecko: timeout"
        assert time.monotonic() - started < 0.5

    def test_slow_handler_hits_total_timeout(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={"bitcoin": {"usd": 110836}})

        started = time.monotonic()
        outcome = fetch(CoinGeckoFetcher, handler, "bitcoin", timeout=0.05)

        assert isinstance(outcome, FetcherTimeoutError)
        assert time.monotonic() - started < 0.5

    def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        outcome = fetch(CoinGeckoFetcher, handler, "bitcoin")
        assert type(outcome) is FetcherError
        assert outcome.reason is FetchErrorReason.NETWORK


class TestCoinMarketCapFetcher:
    """Test CoinMarketCap request construction and parsing."""

    PAYLOAD = {"data": {"BTC": {"quote": {"USD": {"price": 110900.5}}}}}

    def test_missing_key_skips_network(self) -> None:
        """Without an API key no request should be sent."""
        handler = Recorder(json=self.PAYLOAD)
        outcome = fetch(CoinMarketCapFetcher, handler, "BTC")

        assert isinstance(outcome, FetcherConfigError)
        assert outcome.status_code == 401
        assert outcome.source == "coinmarketcap"
        assert handler.requests == []

    def test_success(self) -> None:
        handler = Recorder(json=self.PAYLOAD)
        outcome = fetch(CoinMarketCapFetcher, handler, "btc", api_key="cmc-key")

        assert isinstance(outcome, SourceQuote)
        assert outcome.price == 110900.5

        request = handler.requests[0]
        assert request.headers["X-CMC_PRO_API_KEY"] == "cmc-key"
        assert request.url.params["symbol"] == "BTC"
        assert request.url.params["convert"] == "USD"

    def test_list_shape(self) -> None:
        """v2 style list of matches uses the first entry."""
        payload = {"data": {"BTC": [{"quote": {"USD": {"price": "110000"}}}]}}
        outcome = fetch(CoinMarketCapFetcher, Recorder(json=payload), "BTC", api_key="k")

        assert isinstance(outcome, SourceQuote)
        assert outcome.price == 110000.0

    def test_symbol_missing(self) -> None:
        outcome = fetch(CoinMarketCapFetcher, Recorder(json={"data": {}}), "BTC", api_key="k")
        assert isinstance(outcome, FetcherResponseError)

    def test_unauthorized(self) -> None:
        outcome = fetch(CoinMarketCapFetcher, Recorder(status_code=401, json={}), "BTC", api_key="bad")
        assert isinstance(outcome, FetcherHTTPError)
        assert outcome.status_code == 401


class TestTwelveDataFetcher:
    """Test TwelveData request construction and parsing."""

    def test_success_without_key(self) -> None:
        handler = Recorder(json={"price": "2650.75"})
        outcome = fetch(TwelveDataFetcher, handler, "XAU/USD")

        assert isinstance(outcome, SourceQuote)
        assert outcome.price == 2650.75
        assert outcome.source_name == "twelvedata"

        request = handler.requests[0]
        assert request.url.params["symbol"] == "XAU/USD"
        assert "apikey" not in request.url.params

    def test_api_key_param(self) -> None:
        handler = Recorder(json={"price": "1.08"})
        fetch(TwelveDataFetcher, handler, "EUR/USD", api_key="td-key")

        assert handler.requests[0].url.params["apikey"] == "td-key"

    def test_error_body_with_code(self) -> None:
        """Errors reported in a 200 body are classified by their code."""
        payload = {"code": 429, "message": "API credits exhausted", "status": "error"}
        outcome = fetch(TwelveDataFetcher, Recorder(json=payload), "XAU/USD")

        assert isinstance(outcome, FetcherHTTPError)
        assert outcome.status_code == 429

    def test_invalid_price(self) -> None:
        outcome = fetch(TwelveDataFetcher, Recorder(json={"price": "n/a"}), "XAU/USD")
        assert isinstance(outcome, FetcherResponseError)

    def test_missing_price(self) -> None:
        outcome = fetch(TwelveDataFetcher, Recorder(json={"symbol": "XAU/USD"}), "XAU/USD")
        assert isinstance(outcome, FetcherResponseError)
