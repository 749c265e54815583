#!/usr/bin/env python3
"""Oracle Ark.

Reads a batch price request as JSON from stdin, fetches each token from
its configured sources, validates and aggregates the quotes, and writes
a size-bounded JSON response to stdout.

Logs go to stderr. A malformed or invalid request produces no response
and exit status 1.

    echo '{"tokens": [...], "max_price_deviation_percent": 5.0}' | python -m oracle_ark.main
"""

import argparse
import asyncio
import logging
import math
import os
import sys
from collections.abc import Mapping

from .src.errors import RequestError
from .src.fetchers import BaseFetcher, get_available_fetchers
from .src.PriceOracle import PriceOracle
from .src.RequestValidator import parse_request
from .src.TokenResult import MAX_OUTPUT_BYTES, ResponseEnvelope

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Environment variable holding each source's API key
API_KEY_ENV_VARS = {
    "coingecko": "COINGECKO_API_KEY",
    "coinmarketcap": "COINMARKETCAP_API_KEY",
    "twelvedata": "TWELVEDATA_API_KEY",
}


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: coingecko=abc123,coinmarketcap=xyz789

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            source, key = item.split("=", 1)
            if key.strip():
                api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Read API keys from the per-source environment variables.

    Looks for: COINGECKO_API_KEY, COINMARKETCAP_API_KEY, TWELVEDATA_API_KEY.

    :param environ: Environment mapping (default: os.environ).
    :returns: Dict mapping source names to API keys.
    """
    environ = os.environ if environ is None else environ
    return {
        source: environ[var]
        for source, var in API_KEY_ENV_VARS.items()
        if environ.get(var)
    }


def parse_source_weights(weights_str: str | None) -> dict[str, float]:
    """Parse comma-separated weights into a dictionary.

    Format: source1=2.0,source2=1

    :param weights_str: Comma-separated weight string.
    :returns: Dict mapping source names to weights.
    :raises ValueError: If an entry is malformed, names an unknown source,
        or its weight is not a positive finite number.
    """
    if not weights_str:
        return {}

    available = get_available_fetchers()
    weights = {}
    for item in weights_str.split(","):
        item = item.strip()
        if not item:
            continue
        if "=" not in item:
            raise ValueError(f"Invalid weight entry '{item}'. Expected source=weight")
        source, value = item.split("=", 1)
        source = source.strip().lower()
        if source not in available:
            raise ValueError(
                f"Unknown source '{source}' in weights. Available: {', '.join(available)}"
            )
        try:
            weight = float(value)
        except ValueError as e:
            raise ValueError(f"Invalid weight for source '{source}': {value.strip()!r}") from e
        if not math.isfinite(weight) or weight <= 0:
            raise ValueError(f"Weight for source '{source}' must be positive and finite")
        weights[source] = weight
    return weights


def build_parser() -> argparse.ArgumentParser:
    available_sources = get_available_fetchers()

    parser = argparse.ArgumentParser(
        description="Oracle Ark: multi-source token price oracle (stdin -> stdout)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(available_sources)}

Examples:
  # Bitcoin from CoinGecko
  echo '{{"tokens":[{{"token_id":"bitcoin","sources":[{{"name":"coingecko","token_id":null}}],
        "aggregation_method":"average","min_sources_num":1}}],
        "max_price_deviation_percent":10.0}}' | python -m oracle_ark.main

  # Weight CoinGecko twice as much as the others for weighted_avg
  python -m oracle_ark.main --source-weights coingecko=2 < request.json

Environment variables (CLI args take precedence):
  COINGECKO_API_KEY, COINMARKETCAP_API_KEY, TWELVEDATA_API_KEY,
  API_KEYS, SOURCE_WEIGHTS, FETCH_TIMEOUT, MAX_OUTPUT_BYTES
""",
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., coingecko=abc,coinmarketcap=xyz)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "--source-weights",
        dest="source_weights",
        type=str,
        help="Comma-separated weights for weighted_avg (e.g., coingecko=2,twelvedata=1)",
        default=os.environ.get("SOURCE_WEIGHTS"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual fetch requests in seconds (default: 10.0)",
        default=os.environ.get("FETCH_TIMEOUT") or str(BaseFetcher.DEFAULT_TIMEOUT),
    )

    parser.add_argument(
        "--max-output-bytes",
        dest="max_output_bytes",
        type=int,
        help=f"Size ceiling for the JSON response (default: {MAX_OUTPUT_BYTES})",
        default=os.environ.get("MAX_OUTPUT_BYTES") or str(MAX_OUTPUT_BYTES),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only log errors",
    )

    return parser


async def run_oracle(oracle: PriceOracle, request_text: str) -> ResponseEnvelope:
    """Validate the request and run it, closing the shared HTTP client afterwards.

    :raises RequestError: If the request is malformed or invalid.
    """
    request = parse_request(request_text)
    try:
        return await oracle.run(request)
    finally:
        await BaseFetcher.close_shared_client()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the Oracle Ark CLI.

    :returns: Process exit status.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    if not math.isfinite(args.fetch_timeout) or args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    if args.max_output_bytes < 1:
        parser.error("--max-output-bytes must be positive")

    # Parse API keys (CLI + environment)
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))

    try:
        source_weights = parse_source_weights(args.source_weights)
        oracle = PriceOracle(
            api_keys=api_keys,
            source_weights=source_weights,
            fetch_timeout=args.fetch_timeout,
        )
    except ValueError as e:
        parser.error(str(e))

    logger.debug(f"Sources: {', '.join(get_available_fetchers())}")
    if api_keys:
        logger.debug(f"API keys: {', '.join(sorted(api_keys))}")

    try:
        envelope = asyncio.run(run_oracle(oracle, sys.stdin.read()))
    except RequestError as e:
        logger.error(f"Invalid request: {e}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1

    sys.stdout.write(envelope.to_json(args.max_output_bytes))
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
