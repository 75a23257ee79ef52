"""Client-side submission state machine.

This module drives one logical submission end-to-end:

    IDLE -> PENDING -> SUCCESS
                    -> POLLING -> SUCCESS/ERROR
                    -> ERROR

The client handles:
- Input validation before any request is sent
- One request identity per logical submission, reused by every retry
- Retry with exponential backoff on 503 and network failures
- Hand-off to the status poller on 202
- Rejection of new submits while a submission is in flight
- Reset, which detaches any in-flight retry or poll from visible state

Examples:
    Submitting against a running service::

        from reliable_submit.adapters.http import HttpSubmissionTransport
        from reliable_submit.core.client import SubmissionClient

        async with HttpSubmissionTransport("http://localhost:3001") as transport:
            client = SubmissionClient(transport)
            attempt = await client.submit("a@b.com", "10")
            print(attempt.state, attempt.message, attempt.request_id)

    Watching transitions::

        client.subscribe(lambda attempt: print(attempt.state, attempt.message))
"""

import asyncio
import math
from collections.abc import Callable
from typing import Any

from reliable_submit.adapters.base import SubmissionTransport
from reliable_submit.config import ClientConfig
from reliable_submit.core.poller import PollOutcome, SleepFunction, StatusPoller
from reliable_submit.exceptions import (
    InputValidationError,
    NetworkError,
    SubmissionError,
    TerminalServerError,
    TransientServiceError,
)
from reliable_submit.identity import IdentityFactory, create_request_id
from reliable_submit.models import ClientState, ServiceResponse, SubmissionAttempt
from reliable_submit.observability.logging import get_logger
from reliable_submit.observability.metrics import record_client_retry, record_client_terminal

logger = get_logger(__name__)

Listener = Callable[[SubmissionAttempt], None]

SUBMITTING_MESSAGE = "Submitting..."
SUCCESS_MESSAGE = "Submission successful!"
ACCEPTED_MESSAGE = "Submission accepted, processing... This may take a few seconds."
COMPLETED_MESSAGE = "Submission completed successfully!"
UNVERIFIED_MESSAGE = "Unable to verify submission status. Please check later."
RETRIES_EXHAUSTED_MESSAGE = "Submission failed after multiple retries. Please try again later."
NETWORK_EXHAUSTED_MESSAGE = "Network error. Please check your connection and try again."
GENERIC_ERROR_MESSAGE = "An error occurred. Please try again."
MISSING_FIELDS_MESSAGE = "Please fill in all fields."
INVALID_AMOUNT_MESSAGE = "Please enter a valid amount."


def validate_inputs(email: str | None, amount: Any) -> float:
    """Validate raw form inputs.

    Args:
        email: The email as typed
        amount: The amount as typed (string) or already numeric

    Returns:
        The amount as a float

    Raises:
        InputValidationError: If a field is empty or the amount is not a
            positive finite number
    """
    if not email or not email.strip():
        raise InputValidationError(MISSING_FIELDS_MESSAGE, field="email")
    if amount is None or (isinstance(amount, str) and not amount.strip()):
        raise InputValidationError(MISSING_FIELDS_MESSAGE, field="amount")

    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise InputValidationError(INVALID_AMOUNT_MESSAGE, field="amount") from None

    if not math.isfinite(value) or value <= 0:
        raise InputValidationError(INVALID_AMOUNT_MESSAGE, field="amount")
    return value


def backoff_delay_ms(attempt: int, base_delay_ms: int) -> int:
    """Wait before retry ``attempt`` (1-based): base * 2 ** (attempt - 1)."""
    return base_delay_ms * 2 ** (attempt - 1)


def raise_for_submit_status(response: ServiceResponse) -> None:
    """Classify a submit response, raising for anything but 200/202.

    Raises:
        TransientServiceError: On 503
        TerminalServerError: On any other non-2xx-accepted status
    """
    if response.status_code in (200, 202):
        return

    server_message = response.body.get("error")
    if response.status_code == 503:
        retry_after = response.body.get("retryAfter")
        raise TransientServiceError(
            message=server_message or "Service temporarily unavailable",
            request_id=response.body.get("requestId"),
            retry_after=retry_after if isinstance(retry_after, (int, float)) else None,
        )

    raise TerminalServerError(
        message=f"Submission rejected with status {response.status_code}",
        status_code=response.status_code,
        server_message=server_message if isinstance(server_message, str) else None,
    )


class _SubmissionContext:
    """Owned state of one logical submission.

    A context stays active until its submission ends or the client is
    reset; stale retries and polls check ``active`` after every suspension.
    """

    def __init__(self, identity: str) -> None:
        self.identity = identity
        self.attempt_count = 0
        self.active = True


class SubmissionClient:
    """Drives logical submissions through the client state machine.

    Attributes:
        transport: Transport used to reach the service
        config: Client configuration
        poller: Status poller used after a 202
    """

    def __init__(
        self,
        transport: SubmissionTransport,
        config: ClientConfig | None = None,
        sleep: SleepFunction = asyncio.sleep,
        identity_factory: IdentityFactory = create_request_id,
        poller: StatusPoller | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            transport: Transport used to reach the service
            config: Client configuration (defaults if omitted)
            sleep: Suspension used for backoff waits, in seconds
            identity_factory: Mints a fresh request identity from an email
            poller: Status poller (built from transport, config and sleep if omitted)
        """
        self.transport = transport
        self.config = config or ClientConfig()
        self._sleep = sleep
        self._identity_factory = identity_factory
        self.poller = poller or StatusPoller(transport, self.config, sleep)

        self._attempt = SubmissionAttempt()
        self._context: _SubmissionContext | None = None
        self._listeners: list[Listener] = []

    @property
    def state(self) -> ClientState:
        return self._attempt.state

    @property
    def is_busy(self) -> bool:
        """True while submit is disabled (PENDING or POLLING)."""
        return self._attempt.state.is_busy

    def snapshot(self) -> SubmissionAttempt:
        """Return a copy of the current submission attempt."""
        return self._attempt.model_copy()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback invoked with a snapshot at every transition.

        Returns:
            A function that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def submit(self, email: str | None, amount: Any) -> SubmissionAttempt | None:
        """Start a new logical submission and drive it to a terminal state.

        Allowed from IDLE or a terminal state; every call that passes
        validation mints a fresh request identity.

        Args:
            email: The email as typed
            amount: The amount as typed

        Returns:
            The terminal SubmissionAttempt snapshot, or None if the call was
            rejected because a submission is in flight, or if the client was
            reset before this submission finished
        """
        if self.is_busy:
            logger.debug("submission.rejected_busy", identity=self._attempt.identity)
            return None

        try:
            amount_value = validate_inputs(email, amount)
        except InputValidationError as e:
            self._context = None
            self._publish(SubmissionAttempt(state=ClientState.ERROR, message=e.message))
            record_client_terminal(ClientState.ERROR.value)
            logger.info("submission.invalid", field=e.field, error=e.message)
            return self.snapshot()

        email = (email or "").strip()
        context = _SubmissionContext(self._identity_factory(email))
        self._context = context
        self._publish(
            SubmissionAttempt(
                identity=context.identity,
                state=ClientState.PENDING,
                message=SUBMITTING_MESSAGE,
            )
        )
        logger.info("submission.started", identity=context.identity)

        try:
            return await self._run(context, email, amount_value)
        except Exception as e:
            # Anything unexpected still has to release the busy state.
            logger.exception(
                "submission.failed_unexpectedly",
                identity=context.identity,
                error_type=type(e).__name__,
            )
            if not context.active:
                return None
            return self._finish(context, ClientState.ERROR, GENERIC_ERROR_MESSAGE)

    def reset(self) -> None:
        """Return to IDLE, clearing the identity and retry counter.

        Any retry or poll still scheduled for the previous submission stops
        affecting visible state.
        """
        if self._context is not None:
            self._context.active = False
            logger.info("submission.reset", identity=self._context.identity)
        self._context = None
        self._publish(SubmissionAttempt())

    async def _run(
        self,
        context: _SubmissionContext,
        email: str,
        amount: float,
    ) -> SubmissionAttempt | None:
        while True:
            try:
                response = await self.transport.submit(context.identity, email, amount)
                if not context.active:
                    return None
                raise_for_submit_status(response)
            except (TransientServiceError, NetworkError) as e:
                if not context.active:
                    return None
                if context.attempt_count >= self.config.max_retries:
                    return self._give_up(context, e)
                await self._backoff(context, e)
                if not context.active:
                    return None
                continue
            except TerminalServerError as e:
                logger.warning(
                    "submission.rejected",
                    identity=context.identity,
                    status_code=e.status_code,
                    error=e.server_message,
                )
                return self._finish(
                    context,
                    ClientState.ERROR,
                    e.server_message or GENERIC_ERROR_MESSAGE,
                )

            if response.status_code == 200:
                request_id = response.body.get("requestId") or context.identity
                message = response.body.get("message") or SUCCESS_MESSAGE
                return self._finish(context, ClientState.SUCCESS, message, request_id)

            return await self._await_completion(context, response)

    def _give_up(self, context: _SubmissionContext, error: SubmissionError) -> SubmissionAttempt:
        unavailable = isinstance(error, TransientServiceError)
        logger.warning(
            "submission.retries_exhausted",
            identity=context.identity,
            retries=context.attempt_count,
            cause="unavailable" if unavailable else "network",
        )
        return self._finish(
            context,
            ClientState.ERROR,
            RETRIES_EXHAUSTED_MESSAGE if unavailable else NETWORK_EXHAUSTED_MESSAGE,
        )

    async def _backoff(self, context: _SubmissionContext, error: SubmissionError) -> None:
        """Count the next retry and wait out its backoff delay."""
        unavailable = isinstance(error, TransientServiceError)

        context.attempt_count += 1
        delay_ms = backoff_delay_ms(context.attempt_count, self.config.base_delay_ms)
        label = "Service temporarily unavailable" if unavailable else "Network error"
        self._update(
            context,
            attempt_count=context.attempt_count,
            message=f"{label}. Retrying... ({context.attempt_count}/{self.config.max_retries})",
        )
        record_client_retry("unavailable" if unavailable else "network")
        logger.info(
            "submission.retry_scheduled",
            identity=context.identity,
            attempt=context.attempt_count,
            delay_ms=delay_ms,
            error=error.message,
        )

        await self._sleep(delay_ms / 1000)

    async def _await_completion(
        self,
        context: _SubmissionContext,
        response: ServiceResponse,
    ) -> SubmissionAttempt | None:
        request_id = response.body.get("requestId") or context.identity
        estimated = response.body.get("estimatedDelay")
        estimated_delay_ms = int(estimated) if isinstance(estimated, (int, float)) else None

        self._update(
            context,
            state=ClientState.POLLING,
            message=ACCEPTED_MESSAGE,
            request_id=request_id,
        )

        result = await self.poller.poll(
            request_id,
            estimated_delay_ms,
            should_stop=lambda: not context.active,
        )
        if not context.active or result.outcome is PollOutcome.ABANDONED:
            return None

        if result.succeeded:
            return self._finish(context, ClientState.SUCCESS, COMPLETED_MESSAGE, request_id)
        return self._finish(context, ClientState.ERROR, UNVERIFIED_MESSAGE, request_id)

    def _update(self, context: _SubmissionContext, **changes: Any) -> None:
        if not context.active:
            return
        self._publish(self._attempt.model_copy(update=changes))

    def _finish(
        self,
        context: _SubmissionContext,
        state: ClientState,
        message: str,
        request_id: str | None = None,
    ) -> SubmissionAttempt:
        """Enter a terminal state and release the submission's identity."""
        attempt = self._attempt.model_copy(
            update={
                "identity": None,
                "state": state,
                "message": message,
                "request_id": request_id or self._attempt.request_id,
                "attempt_count": 0 if state is ClientState.SUCCESS else context.attempt_count,
            }
        )
        context.active = False
        self._context = None
        self._publish(attempt)
        record_client_terminal(state.value)
        logger.info(
            "submission.finished",
            state=state.value,
            request_id=attempt.request_id,
            retries=context.attempt_count,
        )
        return self.snapshot()

    def _publish(self, attempt: SubmissionAttempt) -> None:
        self._attempt = attempt
        for listener in list(self._listeners):
            listener(attempt.model_copy())
