"""httpx transport for the submission client.

Examples:
    Talking to a running service::

        from reliable_submit.adapters.http import HttpSubmissionTransport

        async with HttpSubmissionTransport("http://localhost:3001") as transport:
            response = await transport.submit(request_id, "a@b.com", 10.0)

    Talking to an in-process app (tests)::

        transport = HttpSubmissionTransport(
            "http://testserver",
            transport=httpx.ASGITransport(app=app),
        )
"""

from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx

from reliable_submit.exceptions import NetworkError
from reliable_submit.models import ServiceResponse
from reliable_submit.utils.headers import REQUEST_ID_HEADER


class HttpSubmissionTransport:
    """SubmissionTransport backed by an httpx.AsyncClient.

    Attributes:
        base_url: Root URL of the service
        client: The underlying httpx client
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Root URL of the service
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (e.g. MockTransport, ASGITransport)
            client: Optional pre-built client; takes precedence over transport
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def submit(self, request_id: str, email: str, amount: float) -> ServiceResponse:
        return await self._request(
            "POST",
            "/api/submit",
            headers={REQUEST_ID_HEADER: request_id},
            json={"email": email, "amount": amount},
        )

    async def get_status(self, request_id: str) -> ServiceResponse:
        return await self._request("GET", f"/api/status/{quote(request_id, safe='@')}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "HttpSubmissionTransport":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> ServiceResponse:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {path} failed: {e}", cause=e) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        return ServiceResponse(status_code=response.status_code, body=body)
