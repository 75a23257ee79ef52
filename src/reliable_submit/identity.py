"""Request identity derivation.

A request identity is the idempotency key for one logical submission. It
is derived once, when the user submits, from the submission's email plus
the current time and a random token, and is then reused verbatim for every
retry of that submission.

The email prefix is percent-encoded where it would not survive an HTTP
header or a single path segment, so every identity is printable ASCII
with no ``/`` in it.

Examples:
    >>> create_request_id("a@b.com", now_ms=1700000000000, token="k3j9x0q2z")
    'a@b.com-1700000000000-k3j9x0q2z'
    >>> header_safe("josé@example.com")
    'jos%C3%A9@example.com'
"""

import secrets
import string
import time
from collections.abc import Callable
from urllib.parse import quote

TOKEN_ALPHABET = string.digits + string.ascii_lowercase
TOKEN_LENGTH = 9

# Punctuation left readable in the prefix; "%" and "/" are always escaped.
_SAFE_PUNCTUATION = "".join(c for c in string.punctuation if c not in "%/")

# Signature of anything that can mint a fresh identity from an email.
IdentityFactory = Callable[[str], str]


def random_token(length: int = TOKEN_LENGTH) -> str:
    """Return a random base-36 token of the given length."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def header_safe(email: str) -> str:
    """Percent-encode everything in ``email`` that is not printable ASCII.

    Whitespace, ``%`` and ``/`` are encoded as well. ``urllib.parse.unquote``
    recovers the original text.
    """
    return quote(email, safe=_SAFE_PUNCTUATION)


def create_request_id(
    email: str,
    now_ms: int | None = None,
    token: str | None = None,
) -> str:
    """Create a new request identity for a user-initiated submission.

    Args:
        email: The submission's email, used as a readable prefix.
        now_ms: Epoch time in milliseconds (defaults to the current time).
        token: Random component (defaults to a fresh 9-character token).

    Returns:
        An opaque identity of the form ``<email>-<epoch ms>-<token>``, with
        the email passed through :func:`header_safe`.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    if token is None:
        token = random_token()
    return f"{header_safe(email)}-{now_ms}-{token}"
