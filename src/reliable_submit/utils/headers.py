"""Request identity header handling.

The client carries its request identity in the ``X-Request-ID`` header.
Header names are matched case-insensitively. A submission that arrives
without the header gets a server-derived identity instead.
"""

import time

REQUEST_ID_HEADER = "X-Request-ID"


def extract_request_id(headers: dict[str, str]) -> str | None:
    """Extract the request identity from request headers.

    Args:
        headers: Request headers

    Returns:
        The stripped header value, or None if absent or blank

    Example:
        >>> extract_request_id({"x-request-id": " abc "})
        'abc'
        >>> extract_request_id({"content-type": "application/json"}) is None
        True
    """
    header_name = REQUEST_ID_HEADER.lower()

    for key, value in headers.items():
        if key.lower() == header_name:
            value = value.strip()
            return value or None

    return None


def fallback_request_id(email: str, now_ms: int | None = None) -> str:
    """Derive a request identity for a submission that did not send one.

    Example:
        >>> fallback_request_id("a@b.com", now_ms=1700000000000)
        'a@b.com-1700000000000'
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{email}-{now_ms}"
