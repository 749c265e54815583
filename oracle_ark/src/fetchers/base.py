"""Base fetcher interface, fetch error taxonomy and shared HTTP client.

All price sources inherit from BaseFetcher and implement the fetch() method,
which either returns a SourceQuote or raises a classified FetcherError.
A shared httpx.AsyncClient is used across all fetchers of an invocation.

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myfetcher"

        async def fetch(self, token_id: str) -> SourceQuote:
            response = await self._get(f"https://api.example.com/{token_id}")
            return self._quote(self._json(response)["price"])
"""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Union

import httpx

logger = logging.getLogger(__name__)


class FetchErrorReason(str, Enum):
    """Classification of a failed fetch attempt."""

    HTTP_STATUS = "http_status"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"
    TIMEOUT = "timeout"


class FetcherError(Exception):
    """Base exception for fetcher errors.

    A plain FetcherError is a network-level failure (connection refused,
    DNS, TLS, ...). Subclasses narrow the reason.

    :ivar source: Name of the source that failed (filled in by the fetcher).
    """

    reason: ClassVar[FetchErrorReason] = FetchErrorReason.NETWORK

    def __init__(self, message: str, *, source: str = "") -> None:
        self.source = source
        super().__init__(message)

    @property
    def summary(self) -> str:
        """Short human-readable classification used in response messages."""
        return "network error"

    def __str__(self) -> str:
        return f"{self.source}: {self.summary}" if self.source else self.summary


class FetcherHTTPError(FetcherError):
    """Raised when the source answers with a non-success status.

    :ivar status_code: HTTP status code from the failed request.
    :ivar detail: Truncated response body or explanation.
    """

    reason = FetchErrorReason.HTTP_STATUS

    def __init__(self, status_code: int, detail: str = "", *, source: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}", source=source)

    @property
    def summary(self) -> str:
        return f"HTTP {self.status_code}"


class FetcherConfigError(FetcherHTTPError):
    """Raised when fetcher configuration is invalid (e.g., missing API key).

    Treated like an unauthorized response, but no request is ever sent.
    """

    def __init__(self, detail: str, *, source: str = "") -> None:
        super().__init__(401, detail, source=source)


class FetcherTimeoutError(FetcherError):
    """Raised when the request did not complete within the timeout."""

    reason = FetchErrorReason.TIMEOUT

    @property
    def summary(self) -> str:
        return "timeout"


class FetcherResponseError(FetcherError):
    """Raised when a success response cannot be parsed into a price."""

    reason = FetchErrorReason.MALFORMED_RESPONSE

    @property
    def summary(self) -> str:
        return "malformed response"


@dataclass(frozen=True)
class SourceQuote:
    """A single price observation returned by one source.

    :ivar price: Positive, finite price.
    :ivar source_name: Name of the source that produced the quote.
    """

    price: float
    source_name: str


FetchOutcome = Union[SourceQuote, FetcherError]


class BaseFetcher(ABC):
    """Abstract base class for price fetchers.

    Subclasses must implement:
        - name: Class variable identifying the source (e.g., "coingecko")
        - fetch(): Async method returning a SourceQuote or raising FetcherError

    :cvar name: Unique identifier for this fetcher.
    :cvar requires_api_key: Whether fetch_outcome() fails without a key, before any request.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    name: ClassVar[str] = ""
    requires_api_key: ClassVar[bool] = False

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the fetcher.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: 10).
        :param client: Optional HTTP client; the shared client is used if None.
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = client

    @property
    def has_api_key(self) -> bool:
        """Check if this fetcher has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseFetcher._shared_client is None or BaseFetcher._shared_client.is_closed:
            BaseFetcher._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(cls.DEFAULT_TIMEOUT),
                follow_redirects=True,
            )
        return BaseFetcher._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        if BaseFetcher._shared_client is not None and not BaseFetcher._shared_client.is_closed:
            await BaseFetcher._shared_client.aclose()
        BaseFetcher._shared_client = None

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client if self._client is not None else self.get_shared_client()

    @abstractmethod
    async def fetch(self, token_id: str) -> SourceQuote:
        """Fetch the current USD price for a token.

        :param token_id: Source-specific token identifier.
        :returns: SourceQuote with a positive price.
        :raises FetcherError: Classified failure.
        """

    async def fetch_outcome(self, token_id: str) -> FetchOutcome:
        """Fetch a quote, returning the classified error instead of raising it.

        :param token_id: Source-specific token identifier.
        :returns: SourceQuote on success, FetcherError on failure.
        """
        try:
            if self.requires_api_key:
                self._require_api_key()
            return await self.fetch(token_id)
        except FetcherError as e:
            if not e.source:
                e.source = self.name
            logger.warning(f"[{self.name}] Failed to fetch {token_id}: {e.args[0]}")
            return e

    def _require_api_key(self) -> str:
        """Return the API key or raise before any request is made."""
        if not self.has_api_key:
            raise FetcherConfigError("API key required but not provided", source=self.name)
        return self.api_key  # type: ignore[return-value]

    def _quote(self, raw_price: Any) -> SourceQuote:
        """Convert a raw JSON price value into a SourceQuote.

        :param raw_price: Number or numeric string from the response body.
        :raises FetcherResponseError: If the value is not a positive finite number.
        """
        if isinstance(raw_price, bool):
            raise FetcherResponseError(f"Invalid price value: {raw_price!r}", source=self.name)
        try:
            price = float(raw_price)
        except (TypeError, ValueError) as e:
            raise FetcherResponseError(f"Invalid price value: {raw_price!r}", source=self.name) from e
        if not math.isfinite(price) or price <= 0:
            raise FetcherResponseError(f"Invalid price value: {raw_price!r}", source=self.name)
        return SourceQuote(price=price, source_name=self.name)

    def _json(self, response: httpx.Response) -> Any:
        """Decode a response body as JSON.

        :raises FetcherResponseError: If the body is not valid JSON.
        """
        try:
            return response.json()
        except ValueError as e:
            raise FetcherResponseError(f"Invalid JSON body: {e}", source=self.name) from e

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherTimeoutError: When the timeout elapses, counting the whole
            request and body download.
        :raises FetcherError: On other network errors.
        """
        try:
            response = await asyncio.wait_for(
                self.client.get(
                    url,
                    params=params,
                    headers=headers,
                    timeout=self.timeout,
                ),
                self.timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise FetcherTimeoutError(
                f"Request timeout after {self.timeout}s: {e}", source=self.name
            ) from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}", source=self.name) from e

        if not response.is_success:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise FetcherHTTPError(response.status_code, response.text[:200], source=self.name)
        return response


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(
    name: str,
    api_key: str | None = None,
    timeout: float | None = None,
    client: httpx.AsyncClient | None = None,
) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (e.g., "coingecko").
    :param api_key: Optional API key.
    :param timeout: Optional request timeout in seconds.
    :param client: Optional HTTP client to use instead of the shared one.
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](api_key=api_key, timeout=timeout, client=client)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
