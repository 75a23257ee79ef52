"""Custom exceptions for the reliable submission protocol.

This module defines the error taxonomy used by the submission client, the
status poller and the HTTP transport. Retryable errors are handled inside
the client; only terminal failures surface as an ``Error`` state.

Examples:
    Handling a transient failure::

        from reliable_submit.exceptions import NetworkError, TransientServiceError

        try:
            response = await transport.submit(request_id, email, amount)
        except NetworkError as e:
            logger.warning("submission.network_error", error=str(e))
            # retry with the same request id

    Catching every protocol error::

        from reliable_submit.exceptions import SubmissionError

        try:
            validate_inputs(email, amount)
        except SubmissionError as e:
            print(e.message)
"""


class SubmissionError(Exception):
    """Base exception for all submission-related errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class InputValidationError(SubmissionError):
    """Submission inputs failed client-side validation.

    Raised before any request is sent; it never consumes an identity or a
    retry. The message is shown to the user verbatim.

    Attributes:
        message: Human-readable error description.
        field: Name of the offending input, if a single one is at fault.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class TransientServiceError(SubmissionError):
    """The service answered 503 and the submission may be retried.

    Attributes:
        message: Human-readable error description.
        request_id: Identity echoed back by the service.
        retry_after: Server retry hint in seconds, if provided.
    """

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.request_id = request_id
        self.retry_after = retry_after


class NetworkError(SubmissionError):
    """Transport-level failure; no HTTP response was received.

    Follows the same retry policy as TransientServiceError.

    Attributes:
        message: Human-readable error description.
        cause: The underlying transport exception.

    Examples:
        Wrapping an httpx error::

            try:
                response = await client.post(url, json=body)
            except httpx.HTTPError as e:
                raise NetworkError(f"POST {url} failed: {e}", cause=e) from e
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class TerminalServerError(SubmissionError):
    """The service answered with a non-retryable status.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code returned by the service.
        server_message: The ``error`` field of the response body, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        server_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message


class PollExhaustedError(SubmissionError):
    """The poll budget ran out before the service confirmed success.

    This is ambiguous rather than fatal: the client resolves it through the
    configured exhaustion policy.

    Attributes:
        message: Human-readable error description.
        request_id: Identity that was being polled.
        polls: Number of status queries issued.
        last_query_failed: True if the final query raised a network error.
    """

    def __init__(
        self,
        message: str,
        request_id: str,
        polls: int,
        last_query_failed: bool,
    ) -> None:
        super().__init__(message)
        self.request_id = request_id
        self.polls = polls
        self.last_query_failed = last_query_failed
