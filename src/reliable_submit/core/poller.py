"""Status polling for submissions the service accepted asynchronously.

After a 202 the client no longer resends the submission; it only observes
the record by polling ``GET /api/status/<id>`` until the service reports
success or the poll budget runs out.

Schedule (defaults):
    first query after min(estimatedDelay / 2, 3000 ms), then one query
    every 1000 ms, at most ceil(estimatedDelay / 1000) + 5 queries.

Exhaustion:
    If the last query raised a network error the result is UNVERIFIED.
    If it got any HTTP answer without success, 404 included, the
    "optimistic" policy assumes success (ASSUMED). The "strict" policy
    reports UNVERIFIED whenever the budget runs out. Optimistic is the
    default and can hide a real failure.

Examples:
    >>> poll_budget(6000, poll_interval_ms=1000, extra_polls=5)
    11
    >>> initial_wait_ms(6000, cap_ms=3000)
    3000
"""

import asyncio
import math
from collections.abc import Awaitable, Callable
from enum import Enum

from reliable_submit.adapters.base import SubmissionTransport
from reliable_submit.config import ClientConfig
from reliable_submit.exceptions import NetworkError, PollExhaustedError
from reliable_submit.models import SubmissionStatus
from reliable_submit.observability.logging import get_logger

logger = get_logger(__name__)

SleepFunction = Callable[[float], Awaitable[None]]


class PollOutcome(str, Enum):
    """How a polling run ended.

    Attributes:
        CONFIRMED: The service reported success.
        ASSUMED: Budget exhausted; success assumed by the optimistic policy.
        UNVERIFIED: Budget exhausted without a way to confirm success.
        ABANDONED: The owning submission was reset while polling.
    """

    CONFIRMED = "confirmed"
    ASSUMED = "assumed"
    UNVERIFIED = "unverified"
    ABANDONED = "abandoned"


class PollResult:
    """Result of a polling run.

    Attributes:
        outcome: How polling ended
        polls: Number of status queries issued
        error: The exhaustion details when the budget ran out, None otherwise
    """

    def __init__(
        self,
        outcome: PollOutcome,
        polls: int,
        error: PollExhaustedError | None = None,
    ) -> None:
        self.outcome = outcome
        self.polls = polls
        self.error = error

    @property
    def succeeded(self) -> bool:
        return self.outcome in (PollOutcome.CONFIRMED, PollOutcome.ASSUMED)


def poll_budget(estimated_delay_ms: int, poll_interval_ms: int, extra_polls: int) -> int:
    """Maximum number of status queries for a given estimated delay (at least 1)."""
    return max(1, math.ceil(estimated_delay_ms / poll_interval_ms) + extra_polls)


def initial_wait_ms(estimated_delay_ms: int, cap_ms: int) -> float:
    """Wait before the first status query."""
    return min(estimated_delay_ms / 2, cap_ms)


class StatusPoller:
    """Polls a request identity until it is confirmed or the budget runs out.

    Polling never resends the submission, so it carries no idempotency risk.

    Attributes:
        transport: Transport used for status queries
        config: Client configuration
    """

    def __init__(
        self,
        transport: SubmissionTransport,
        config: ClientConfig | None = None,
        sleep: SleepFunction = asyncio.sleep,
    ) -> None:
        """Initialize the poller.

        Args:
            transport: Transport used for status queries
            config: Client configuration (defaults if omitted)
            sleep: Suspension used between queries, in seconds
        """
        self.transport = transport
        self.config = config or ClientConfig()
        self._sleep = sleep

    async def poll(
        self,
        request_id: str,
        estimated_delay_ms: int | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> PollResult:
        """Poll the status of a request identity.

        Args:
            request_id: Identity returned with the 202 response
            estimated_delay_ms: Server's completion estimate; the configured
                default is used if None
            should_stop: Checked before every query; polling is abandoned
                as soon as it returns True

        Returns:
            PollResult describing how polling ended
        """
        if estimated_delay_ms is None:
            estimated_delay_ms = self.config.default_estimated_delay_ms
        stop = should_stop or (lambda: False)

        budget = poll_budget(
            estimated_delay_ms,
            self.config.poll_interval_ms,
            self.config.extra_polls,
        )
        first_wait = initial_wait_ms(estimated_delay_ms, self.config.max_initial_poll_wait_ms)

        logger.debug(
            "poll.started",
            request_id=request_id,
            estimated_delay_ms=estimated_delay_ms,
            budget=budget,
        )

        await self._sleep(first_wait / 1000)

        polls = 0
        last_failed = False
        while True:
            if stop():
                logger.debug("poll.abandoned", request_id=request_id, polls=polls)
                return PollResult(PollOutcome.ABANDONED, polls)

            polls += 1
            try:
                response = await self.transport.get_status(request_id)
            except NetworkError as e:
                last_failed = True
                logger.warning("poll.query_failed", request_id=request_id, poll=polls, error=str(e))
            else:
                if (
                    response.status_code == 200
                    and response.body.get("status") == SubmissionStatus.SUCCESS.value
                ):
                    logger.info("poll.confirmed", request_id=request_id, polls=polls)
                    return PollResult(PollOutcome.CONFIRMED, polls)
                # Any HTTP answer counts as answered; only the strict policy
                # refuses to assume success from it.
                last_failed = False
                if response.status_code != 200:
                    logger.warning(
                        "poll.unexpected_status",
                        request_id=request_id,
                        poll=polls,
                        status_code=response.status_code,
                    )

            if polls >= budget:
                break
            await self._sleep(self.config.poll_interval_ms / 1000)

        return self._resolve_exhaustion(request_id, polls, last_failed)

    def _resolve_exhaustion(self, request_id: str, polls: int, last_failed: bool) -> PollResult:
        error = PollExhaustedError(
            message=f"No confirmation for {request_id} after {polls} status queries",
            request_id=request_id,
            polls=polls,
            last_query_failed=last_failed,
        )

        if not last_failed and self.config.poll_exhaustion_policy == "optimistic":
            outcome = PollOutcome.ASSUMED
        else:
            outcome = PollOutcome.UNVERIFIED

        logger.warning(
            "poll.exhausted",
            request_id=request_id,
            polls=polls,
            last_query_failed=last_failed,
            policy=self.config.poll_exhaustion_policy,
            outcome=outcome.value,
        )
        return PollResult(outcome, polls, error)
