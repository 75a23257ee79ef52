"""Outcome simulator for the mock submission service.

This module implements the server half of the protocol. For every submit
it consults the idempotency store, replays completed submissions, and
otherwise draws one of three outcomes:

    immediate success  -> 200, record becomes SUCCESS now
    transient failure  -> 503, record stays PENDING
    delayed success    -> 202, record becomes SUCCESS after a delay

The draw and the delay come from injectable functions so tests can force
each branch.

Examples:
    Forcing the delayed branch::

        from reliable_submit.core.simulator import OutcomeSimulator
        from reliable_submit.models import Outcome, SubmissionPayload

        simulator = OutcomeSimulator(
            decide=lambda: Outcome.DELAYED_SUCCESS,
            delay=lambda: 50,
        )

        response = await simulator.submit(
            "a@b.com-1700000000000-k3j9x0q2z",
            SubmissionPayload(email="a@b.com", amount=10),
        )
        # response.status_code == 202
        # response.body["estimatedDelay"] == 50

        await asyncio.sleep(0.1)
        status = await simulator.status("a@b.com-1700000000000-k3j9x0q2z")
        # status.body["status"] == "success"
"""

import asyncio
import random
from collections.abc import Callable
from datetime import UTC, datetime

from reliable_submit.config import ServerConfig
from reliable_submit.core.replay import SUCCESS_MESSAGE, replay_response, success_body
from reliable_submit.models import (
    Outcome,
    ServiceResponse,
    SubmissionPayload,
    SubmissionRecord,
    SubmissionStatus,
    format_timestamp,
)
from reliable_submit.observability.logging import get_logger
from reliable_submit.observability.metrics import (
    decrement_pending_completions,
    increment_pending_completions,
    record_status_query,
    record_submit,
)
from reliable_submit.storage.base import IdempotencyStore
from reliable_submit.storage.memory import MemoryIdempotencyStore

logger = get_logger(__name__)

DecisionFunction = Callable[[], Outcome]
DelayFunction = Callable[[], int]


def random_decision(
    config: ServerConfig,
    rng: random.Random | None = None,
) -> DecisionFunction:
    """Build the default outcome draw from the configured thresholds."""
    source = rng or random.Random()

    def decide() -> Outcome:
        r = source.random()
        if r < config.success_threshold:
            return Outcome.IMMEDIATE_SUCCESS
        if r < config.failure_threshold:
            return Outcome.TRANSIENT_FAILURE
        return Outcome.DELAYED_SUCCESS

    return decide


def random_delay(
    config: ServerConfig,
    rng: random.Random | None = None,
) -> DelayFunction:
    """Build the default delay draw, uniform over [min_delay_ms, max_delay_ms)."""
    source = rng or random.Random()

    def delay() -> int:
        return source.randrange(config.min_delay_ms, config.max_delay_ms)

    return delay


class OutcomeSimulator:
    """Decides and records the outcome of each submission.

    Attributes:
        store: Idempotency store holding one record per request identity
        config: Server configuration
    """

    def __init__(
        self,
        store: IdempotencyStore | None = None,
        config: ServerConfig | None = None,
        decide: DecisionFunction | None = None,
        delay: DelayFunction | None = None,
    ) -> None:
        """Initialize the simulator.

        Args:
            store: Idempotency store (a fresh in-memory store if omitted)
            config: Server configuration (defaults if omitted)
            decide: Outcome draw (random per config thresholds if omitted)
            delay: Delayed-success delay draw in ms (random per config if omitted)
        """
        self.store = store if store is not None else MemoryIdempotencyStore()
        self.config = config or ServerConfig()
        self._decide = decide or random_decision(self.config)
        self._delay = delay or random_delay(self.config)
        self._completions: set[asyncio.Task[None]] = set()

    @property
    def pending_completions(self) -> int:
        """Number of delayed completions not yet fired."""
        return len(self._completions)

    async def submit(self, key: str, payload: SubmissionPayload) -> ServiceResponse:
        """Handle one submit request for a request identity.

        Flow:
            1. If the identity is already SUCCESS: replay it
            2. Otherwise upsert a PENDING record and draw an outcome
            3. Act on the outcome and build the response

        Args:
            key: The request identity
            payload: The submitted email and amount

        Returns:
            ServiceResponse with status 200, 202 or 503
        """
        existing = await self.store.get(key)
        if existing is not None and existing.is_success:
            logger.info("submission.replayed", request_id=key)
            record_submit("replay", 200)
            return replay_response(existing, key)

        pending = SubmissionRecord(
            payload=payload,
            status=SubmissionStatus.PENDING,
            timestamp=datetime.now(UTC),
        )
        if not await self.store.put(key, pending):
            # A completion landed between the read and the write
            return await self._replay_stored(key)

        outcome = self._decide()
        logger.info("submission.received", request_id=key, outcome=outcome.value)

        if outcome is Outcome.IMMEDIATE_SUCCESS:
            return await self._succeed_now(key, payload)
        if outcome is Outcome.TRANSIENT_FAILURE:
            return self._fail_transiently(key)
        return self._accept_delayed(key, payload)

    async def status(self, key: str) -> ServiceResponse:
        """Report the current status of a request identity.

        Returns:
            200 with requestId, status, email, amount and timestamp,
            or 404 if the identity is unknown
        """
        record = await self.store.get(key)
        record_status_query(record is not None)

        if record is None:
            return ServiceResponse(status_code=404, body={"error": "Submission not found"})

        return ServiceResponse(
            status_code=200,
            body={
                "requestId": key,
                "status": record.status.value,
                "email": record.payload.email,
                "amount": record.payload.amount,
                "timestamp": format_timestamp(record.timestamp),
            },
        )

    async def shutdown(self) -> None:
        """Cancel every scheduled delayed completion and wait for them to stop."""
        tasks = list(self._completions)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("simulator.shutdown", cancelled=len(tasks))

    async def _succeed_now(self, key: str, payload: SubmissionPayload) -> ServiceResponse:
        record = SubmissionRecord(
            payload=payload,
            status=SubmissionStatus.SUCCESS,
            timestamp=datetime.now(UTC),
        )
        if not await self.store.put(key, record):
            return await self._replay_stored(key)

        record_submit("success", 200)
        return ServiceResponse(status_code=200, body=success_body(key, record, SUCCESS_MESSAGE))

    def _fail_transiently(self, key: str) -> ServiceResponse:
        record_submit("transient_failure", 503)
        return ServiceResponse(
            status_code=503,
            body={
                "error": "Service temporarily unavailable",
                "requestId": key,
                "retryAfter": self.config.retry_after_seconds,
            },
        )

    def _accept_delayed(self, key: str, payload: SubmissionPayload) -> ServiceResponse:
        delay_ms = self._delay()

        task = asyncio.create_task(self._complete_later(key, payload, delay_ms))
        self._completions.add(task)
        increment_pending_completions()
        task.add_done_callback(self._completion_done)

        logger.info("submission.delayed", request_id=key, delay_ms=delay_ms)
        record_submit("delayed", 202)
        return ServiceResponse(
            status_code=202,
            body={
                "message": "Submission accepted, processing...",
                "requestId": key,
                "email": payload.email,
                "amount": payload.amount,
                "estimatedDelay": delay_ms,
            },
        )

    async def _complete_later(self, key: str, payload: SubmissionPayload, delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000)

        record = SubmissionRecord(
            payload=payload,
            status=SubmissionStatus.SUCCESS,
            timestamp=datetime.now(UTC),
        )
        written = await self.store.put(key, record)
        logger.info("submission.completed", request_id=key, written=written)

    def _completion_done(self, task: "asyncio.Task[None]") -> None:
        self._completions.discard(task)
        decrement_pending_completions()
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "submission.completion_failed",
                error=str(task.exception()),
                error_type=type(task.exception()).__name__,
            )

    async def _replay_stored(self, key: str) -> ServiceResponse:
        stored = await self.store.get(key)
        if stored is None or not stored.is_success:
            raise RuntimeError(f"Store refused write for {key} but holds no success record")
        logger.info("submission.replayed", request_id=key)
        record_submit("replay", 200)
        return replay_response(stored, key)
