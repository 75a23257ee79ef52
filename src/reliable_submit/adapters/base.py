"""Client-side transport protocol.

The submission client and status poller talk to the service only through
this interface, which keeps the state machine independent of the HTTP
library and lets tests script responses.

Error Handling:
    Implementations return every HTTP response, whatever its status, as a
    ServiceResponse. They raise NetworkError when no response was received
    at all (connection refused, timeout, DNS failure).
"""

from typing import Protocol, runtime_checkable

from reliable_submit.models import ServiceResponse


@runtime_checkable
class SubmissionTransport(Protocol):
    """Protocol for sending submissions and querying their status."""

    async def submit(self, request_id: str, email: str, amount: float) -> ServiceResponse:
        """Send a submission carrying the given request identity.

        Raises:
            NetworkError: If no HTTP response was received.
        """
        ...

    async def get_status(self, request_id: str) -> ServiceResponse:
        """Query the current status of a request identity.

        Raises:
            NetworkError: If no HTTP response was received.
        """
        ...
