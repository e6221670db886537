"""Body and header extraction for the POST relay."""

import json
from collections.abc import AsyncIterable, Mapping
from typing import Any

from src.relay.errors import InvalidPayloadError

# Connection-specific headers that must not be replayed against another origin
HOP_BY_HOP_HEADERS = frozenset({"host", "connection", "content-length", "transfer-encoding"})


def _reject_constant(name: str) -> Any:
    """Reject NaN, Infinity and -Infinity, which are not JSON."""
    raise ValueError(f"Non-standard JSON constant {name}")


async def read_body(chunks: AsyncIterable[bytes] | None) -> bytes:
    """Consume a body stream to completion.

    Args:
        chunks: Raw body chunks, or None for a bodiless request.

    Returns:
        All chunks concatenated.
    """
    if chunks is None:
        return b""
    parts = [chunk async for chunk in chunks]
    return b"".join(parts)


def parse_json_payload(raw: bytes) -> Any:
    """Decode a raw body as UTF-8 JSON.

    Args:
        raw: Raw request body.

    Returns:
        Parsed JSON document.

    Raises:
        InvalidPayloadError: If the body is not valid UTF-8 or not valid JSON.
    """
    try:
        return json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        raise InvalidPayloadError(
            f"Invalid JSON payload: {e}",
            details={"body_length": len(raw)},
        ) from e


def forward_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy inbound headers minus the hop-by-hop deny-list.

    Matching is case-insensitive; kept names and values are unchanged.
    Provider signature headers pass through so targets can verify the sender.
    """
    return {
        name: value
        for name, value in headers.items()
        if name.lower() not in HOP_BY_HOP_HEADERS
    }
