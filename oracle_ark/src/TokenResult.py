"""TokenResult and ResponseEnvelope: The JSON document written to stdout.

The consuming on-chain caller accepts at most MAX_OUTPUT_BYTES. The
envelope is encoded compactly; if it is still too large, messages are
shortened deterministically:

    1. Pick the longest message (the earliest token wins ties)
    2. Cut it by the number of bytes over the limit and end it with "..."
    3. Re-encode and repeat until the output fits or every message is "..."

Price data is never altered.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any

logger = logging.getLogger(__name__)

MAX_OUTPUT_BYTES = 900
ELLIPSIS = "..."


@dataclass(frozen=True)
class PriceData:
    """Aggregated price for a token.

    :ivar price: Aggregated price.
    :ivar timestamp: Unix time (seconds) of aggregation.
    :ivar sources: Sources whose quotes were used, in fetch order.
    """

    price: float
    timestamp: int
    sources: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "price": float(self.price),
            "timestamp": int(self.timestamp),
            "sources": list(self.sources),
        }


@dataclass(frozen=True)
class TokenResult:
    """Outcome for one requested token.

    :ivar token: Token id from the request.
    :ivar data: Price data, or None on soft failure.
    :ivar message: Diagnostic text, None only on full success.
    """

    token: str
    data: PriceData | None = None
    message: str | None = None

    @property
    def success(self) -> bool:
        """Check if a price was produced."""
        return self.data is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "data": self.data.to_dict() if self.data is not None else None,
            "message": self.message,
        }


@dataclass
class ResponseEnvelope:
    """All token results, in request order."""

    tokens: list[TokenResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"tokens": [t.to_dict() for t in self.tokens]}

    def encode(self) -> str:
        """Encode without any size limit.

        :raises ValueError: If any price is NaN or infinite.
        """
        return json.dumps(self.to_dict(), separators=(",", ":"), allow_nan=False)

    def to_json(self, max_bytes: int = MAX_OUTPUT_BYTES) -> str:
        """Encode, shortening messages until the document fits max_bytes.

        :param max_bytes: Size ceiling in UTF-8 bytes.
        :returns: Compact JSON document.
        """
        results = list(self.tokens)
        output = ResponseEnvelope(results).encode()

        while len(output.encode()) > max_bytes:
            candidates = [
                (len(r.message), -i)
                for i, r in enumerate(results)
                if r.message is not None and len(r.message) > len(ELLIPSIS)
            ]
            if not candidates:
                logger.warning(
                    f"Response is {len(output.encode())} bytes, over the "
                    f"{max_bytes} byte limit, with no message left to shorten"
                )
                break

            _, neg_index = max(candidates)
            index = -neg_index
            message = results[index].message
            excess = len(output.encode()) - max_bytes
            keep = max(len(message) - excess - len(ELLIPSIS), 0)
            shortened = message[:keep] + ELLIPSIS
            results[index] = replace(results[index], message=shortened)
            output = ResponseEnvelope(results).encode()

        return output
