"""Unit tests for the client submission state machine.

Covers:
    - Input validation without network calls
    - Immediate success, terminal rejections
    - Retry with backoff and identity reuse
    - Retry exhaustion for 503 and network failures
    - Hand-off to polling after 202
    - Mutual exclusion and reset
"""

import asyncio
from collections.abc import Callable

import pytest
from conftest import (
    ScriptedTransport,
    VirtualClock,
    accepted_response,
    ok_response,
    status_response,
    unavailable_response,
)

from reliable_submit.config import ClientConfig
from reliable_submit.core.client import (
    ACCEPTED_MESSAGE,
    COMPLETED_MESSAGE,
    GENERIC_ERROR_MESSAGE,
    INVALID_AMOUNT_MESSAGE,
    MISSING_FIELDS_MESSAGE,
    NETWORK_EXHAUSTED_MESSAGE,
    RETRIES_EXHAUSTED_MESSAGE,
    SUBMITTING_MESSAGE,
    UNVERIFIED_MESSAGE,
    SubmissionClient,
    backoff_delay_ms,
    raise_for_submit_status,
    validate_inputs,
)
from reliable_submit.exceptions import (
    InputValidationError,
    NetworkError,
    TerminalServerError,
    TransientServiceError,
)
from reliable_submit.models import ClientState, ServiceResponse, SubmissionAttempt


class GatedSleep:
    """Sleep that blocks until released; records requested durations."""

    def __init__(self) -> None:
        self.calls: list[float] = []
        self.release = asyncio.Event()

    async def sleep(self, seconds: float) -> None:
        self.calls.append(seconds)
        await self.release.wait()


class GatedTransport(ScriptedTransport):
    """ScriptedTransport whose submit waits for a gate to open."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()

    async def submit(self, request_id: str, email: str, amount: float) -> ServiceResponse:
        await self.gate.wait()
        return await super().submit(request_id, email, amount)


def make_client(
    transport: ScriptedTransport,
    clock: VirtualClock,
    identity_factory: Callable[[str], str],
    **config: object,
) -> SubmissionClient:
    return SubmissionClient(
        transport,
        ClientConfig(**config),
        sleep=clock.sleep,
        identity_factory=identity_factory,
    )


async def wait_until(predicate: Callable[[], bool]) -> None:
    for _ in range(100):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


# ============================================================================
# Validation
# ============================================================================


@pytest.mark.parametrize(
    ("email", "amount", "message"),
    [
        ("", "10", MISSING_FIELDS_MESSAGE),
        ("   ", "10", MISSING_FIELDS_MESSAGE),
        (None, "10", MISSING_FIELDS_MESSAGE),
        ("a@b.com", "", MISSING_FIELDS_MESSAGE),
        ("a@b.com", None, MISSING_FIELDS_MESSAGE),
        ("a@b.com", "abc", INVALID_AMOUNT_MESSAGE),
        ("a@b.com", "0", INVALID_AMOUNT_MESSAGE),
        ("a@b.com", "-5", INVALID_AMOUNT_MESSAGE),
        ("a@b.com", "nan", INVALID_AMOUNT_MESSAGE),
        ("a@b.com", "inf", INVALID_AMOUNT_MESSAGE),
    ],
)
@pytest.mark.asyncio
async def test_invalid_input_errors_without_request(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
    email: str | None,
    amount: str | None,
    message: str,
) -> None:
    transport = ScriptedTransport([ok_response()])
    client = make_client(transport, clock, sequential_ids)

    attempt = await client.submit(email, amount)

    assert attempt is not None
    assert attempt.state is ClientState.ERROR
    assert attempt.message == message
    assert attempt.identity is None
    assert transport.submit_calls == []


@pytest.mark.parametrize(("amount", "expected"), [("10", 10.0), ("0.01", 0.01), (25, 25.0)])
def test_validate_inputs_accepts_positive_amounts(amount: object, expected: float) -> None:
    assert validate_inputs("a@b.com", amount) == expected


def test_validate_inputs_reports_field() -> None:
    with pytest.raises(InputValidationError) as exc_info:
        validate_inputs("a@b.com", "abc")
    assert exc_info.value.field == "amount"


# ============================================================================
# Immediate Outcomes
# ============================================================================


@pytest.mark.asyncio
async def test_immediate_success(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([ok_response("a@b.com-1")])
    client = make_client(transport, clock, sequential_ids)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.SUCCESS
    assert attempt.request_id == "a@b.com-1"
    assert attempt.message == "Submission successful"
    assert attempt.identity is None
    assert attempt.attempt_count == 0
    assert transport.submit_calls == ["a@b.com-1"]
    assert transport.payloads == [("a@b.com", 10.0)]
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_email_is_trimmed(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([ok_response()])
    client = make_client(transport, clock, sequential_ids)

    await client.submit("  a@b.com ", "10")

    assert transport.payloads == [("a@b.com", 10.0)]
    assert transport.submit_calls == ["a@b.com-1"]


@pytest.mark.asyncio
async def test_rejection_shows_server_message(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport(
        [ServiceResponse(status_code=400, body={"error": "Email and amount are required"})]
    )
    client = make_client(transport, clock, sequential_ids)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.ERROR
    assert attempt.message == "Email and amount are required"
    assert len(transport.submit_calls) == 1
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_rejection_without_server_message_is_generic(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([ServiceResponse(status_code=500, body={})])
    client = make_client(transport, clock, sequential_ids)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.ERROR
    assert attempt.message == GENERIC_ERROR_MESSAGE
    assert len(transport.submit_calls) == 1


# ============================================================================
# Retry
# ============================================================================


@pytest.mark.asyncio
async def test_retries_reuse_identity(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport(
        [unavailable_response(), unavailable_response(), ok_response("a@b.com-1")]
    )
    client = make_client(transport, clock, sequential_ids)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.SUCCESS
    assert transport.submit_calls == ["a@b.com-1"] * 3
    assert clock.sleeps == [1.0, 2.0]
    assert attempt.attempt_count == 0


@pytest.mark.asyncio
async def test_unavailable_exhausts_retries(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([unavailable_response()])
    client = make_client(transport, clock, sequential_ids)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.ERROR
    assert attempt.message == RETRIES_EXHAUSTED_MESSAGE
    assert attempt.attempt_count == 3
    assert len(transport.submit_calls) == 4
    assert len(set(transport.submit_calls)) == 1
    assert clock.sleeps == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_network_errors_exhaust_retries(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([NetworkError("connection refused")])
    client = make_client(transport, clock, sequential_ids)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.ERROR
    assert attempt.message == NETWORK_EXHAUSTED_MESSAGE
    assert len(transport.submit_calls) == 4


@pytest.mark.asyncio
async def test_network_error_then_success(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([NetworkError("reset"), ok_response()])
    client = make_client(transport, clock, sequential_ids)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.SUCCESS
    assert transport.submit_calls == ["a@b.com-1", "a@b.com-1"]


@pytest.mark.asyncio
async def test_zero_retries_fails_on_first_unavailable(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([unavailable_response()])
    client = make_client(transport, clock, sequential_ids, max_retries=0)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.ERROR
    assert len(transport.submit_calls) == 1
    assert clock.sleeps == []


@pytest.mark.parametrize(("attempt", "expected"), [(1, 1000), (2, 2000), (3, 4000), (4, 8000)])
def test_backoff_delay(attempt: int, expected: int) -> None:
    assert backoff_delay_ms(attempt, 1000) == expected


# ============================================================================
# Accepted and Polled
# ============================================================================


@pytest.mark.asyncio
async def test_accepted_then_confirmed(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport(
        [accepted_response("srv-id", estimated_delay=6000)],
        status_fn=lambda _id: status_response("success" if clock.now_ms >= 6000 else "pending"),
    )
    client = make_client(transport, clock, sequential_ids)
    seen: list[SubmissionAttempt] = []
    client.subscribe(seen.append)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.SUCCESS
    assert attempt.message == COMPLETED_MESSAGE
    assert attempt.request_id == "srv-id"
    assert len(transport.submit_calls) == 1
    assert len(transport.status_calls) == 4

    polling = [a for a in seen if a.state is ClientState.POLLING]
    assert len(polling) == 1
    assert polling[0].message == ACCEPTED_MESSAGE
    assert polling[0].request_id == "srv-id"


@pytest.mark.asyncio
async def test_accepted_then_unverifiable(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    def status_fn(_id: str) -> ServiceResponse:
        raise NetworkError("connection refused")

    transport = ScriptedTransport([accepted_response(estimated_delay=2000)], status_fn=status_fn)
    client = make_client(transport, clock, sequential_ids)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.ERROR
    assert attempt.message == UNVERIFIED_MESSAGE
    assert len(transport.status_calls) == 7
    assert len(transport.submit_calls) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("policy", "state"),
    [("optimistic", ClientState.SUCCESS), ("strict", ClientState.ERROR)],
)
async def test_exhaustion_policy(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
    policy: str,
    state: ClientState,
) -> None:
    transport = ScriptedTransport(
        [accepted_response(estimated_delay=1000)],
        status_fn=lambda _id: status_response("pending"),
    )
    client = make_client(transport, clock, sequential_ids, poll_exhaustion_policy=policy)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is state


# ============================================================================
# Identity Lifecycle
# ============================================================================


@pytest.mark.asyncio
async def test_new_submission_gets_new_identity(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([ok_response()])
    client = make_client(transport, clock, sequential_ids)

    await client.submit("a@b.com", "10")
    await client.submit("a@b.com", "10")

    assert transport.submit_calls == ["a@b.com-1", "a@b.com-2"]


@pytest.mark.asyncio
async def test_submit_after_error_starts_fresh(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([unavailable_response()] * 4 + [ok_response()])
    client = make_client(transport, clock, sequential_ids)

    failed = await client.submit("a@b.com", "10")
    succeeded = await client.submit("a@b.com", "10")

    assert failed is not None and failed.state is ClientState.ERROR
    assert succeeded is not None and succeeded.state is ClientState.SUCCESS
    assert succeeded.attempt_count == 0
    assert transport.submit_calls[-1] == "a@b.com-2"


@pytest.mark.asyncio
async def test_unexpected_transport_failure_ends_in_error(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    encode_error = UnicodeEncodeError("ascii", "josé", 3, 4, "ordinal not in range(128)")
    transport = ScriptedTransport([encode_error, ok_response()])
    client = make_client(transport, clock, sequential_ids)

    failed = await client.submit("a@b.com", "10")

    assert failed is not None
    assert failed.state is ClientState.ERROR
    assert failed.message == GENERIC_ERROR_MESSAGE
    assert failed.identity is None
    assert not client.is_busy
    assert transport.submit_calls == ["a@b.com-1"]
    assert clock.sleeps == []

    succeeded = await client.submit("a@b.com", "10")
    assert succeeded is not None and succeeded.state is ClientState.SUCCESS


@pytest.mark.asyncio
async def test_unexpected_failure_while_polling_ends_in_error(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    def broken_status(request_id: str) -> ServiceResponse:
        raise RuntimeError("status decoder broke")

    transport = ScriptedTransport([accepted_response("a@b.com-1")], status_fn=broken_status)
    client = make_client(transport, clock, sequential_ids)

    attempt = await client.submit("a@b.com", "10")

    assert attempt is not None
    assert attempt.state is ClientState.ERROR
    assert attempt.message == GENERIC_ERROR_MESSAGE
    assert not client.is_busy


# ============================================================================
# Mutual Exclusion and Reset
# ============================================================================


@pytest.mark.asyncio
async def test_submit_while_busy_is_rejected(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = GatedTransport([ok_response()])
    client = make_client(transport, clock, sequential_ids)

    task = asyncio.create_task(client.submit("a@b.com", "10"))
    await asyncio.sleep(0)

    assert client.is_busy
    assert client.state is ClientState.PENDING
    assert await client.submit("a@b.com", "10") is None

    transport.gate.set()
    attempt = await task

    assert attempt is not None
    assert attempt.state is ClientState.SUCCESS
    assert transport.submit_calls == ["a@b.com-1"]


@pytest.mark.asyncio
async def test_reset_during_backoff_stops_retries(
    sequential_ids: Callable[[str], str],
) -> None:
    gate = GatedSleep()
    transport = ScriptedTransport([unavailable_response()])
    client = SubmissionClient(transport, sleep=gate.sleep, identity_factory=sequential_ids)

    task = asyncio.create_task(client.submit("a@b.com", "10"))
    await wait_until(lambda: bool(gate.calls))

    client.reset()
    snapshot = client.snapshot()
    assert snapshot.state is ClientState.IDLE
    assert snapshot.identity is None
    assert snapshot.attempt_count == 0

    gate.release.set()

    assert await task is None
    assert client.state is ClientState.IDLE
    assert transport.submit_calls == ["a@b.com-1"]


@pytest.mark.asyncio
async def test_stale_retry_does_not_disturb_next_submission(
    sequential_ids: Callable[[str], str],
) -> None:
    gate = GatedSleep()
    transport = ScriptedTransport([unavailable_response(), ok_response("a@b.com-2")])
    client = SubmissionClient(transport, sleep=gate.sleep, identity_factory=sequential_ids)

    stale = asyncio.create_task(client.submit("a@b.com", "10"))
    await wait_until(lambda: bool(gate.calls))
    client.reset()

    attempt = await client.submit("a@b.com", "20")
    gate.release.set()

    assert await stale is None
    assert attempt is not None
    assert attempt.state is ClientState.SUCCESS
    assert client.state is ClientState.SUCCESS
    assert transport.submit_calls == ["a@b.com-1", "a@b.com-2"]


@pytest.mark.asyncio
async def test_reset_during_polling_abandons_poll(
    sequential_ids: Callable[[str], str],
) -> None:
    gate = GatedSleep()
    transport = ScriptedTransport(
        [accepted_response()],
        status_fn=lambda _id: status_response("success"),
    )
    client = SubmissionClient(transport, sleep=gate.sleep, identity_factory=sequential_ids)

    task = asyncio.create_task(client.submit("a@b.com", "10"))
    await wait_until(lambda: bool(gate.calls))
    assert client.state is ClientState.POLLING
    assert client.is_busy

    client.reset()
    gate.release.set()

    assert await task is None
    assert client.state is ClientState.IDLE
    assert transport.status_calls == []


# ============================================================================
# Listeners
# ============================================================================


@pytest.mark.asyncio
async def test_listener_sees_every_transition(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([unavailable_response(), ok_response()])
    client = make_client(transport, clock, sequential_ids)
    seen: list[SubmissionAttempt] = []
    client.subscribe(seen.append)

    await client.submit("a@b.com", "10")

    assert [a.state for a in seen] == [
        ClientState.PENDING,
        ClientState.PENDING,
        ClientState.SUCCESS,
    ]
    assert seen[0].message == SUBMITTING_MESSAGE
    assert seen[0].identity == "a@b.com-1"
    assert seen[1].message == "Service temporarily unavailable. Retrying... (1/3)"
    assert seen[1].attempt_count == 1


@pytest.mark.asyncio
async def test_unsubscribe(
    clock: VirtualClock,
    sequential_ids: Callable[[str], str],
) -> None:
    transport = ScriptedTransport([ok_response()])
    client = make_client(transport, clock, sequential_ids)
    seen: list[SubmissionAttempt] = []
    unsubscribe = client.subscribe(seen.append)

    unsubscribe()
    await client.submit("a@b.com", "10")

    assert seen == []


# ============================================================================
# Response Classification
# ============================================================================


@pytest.mark.parametrize("status_code", [200, 202])
def test_accepted_statuses_pass(status_code: int) -> None:
    raise_for_submit_status(ServiceResponse(status_code=status_code, body={}))


def test_unavailable_is_transient() -> None:
    with pytest.raises(TransientServiceError) as exc_info:
        raise_for_submit_status(unavailable_response("k-1"))
    assert exc_info.value.retry_after == 1
    assert exc_info.value.request_id == "k-1"


@pytest.mark.parametrize("status_code", [400, 404, 409, 500, 502])
def test_other_statuses_are_terminal(status_code: int) -> None:
    with pytest.raises(TerminalServerError) as exc_info:
        raise_for_submit_status(ServiceResponse(status_code=status_code, body={"error": "nope"}))
    assert exc_info.value.status_code == status_code
    assert exc_info.value.server_message == "nope"


def test_non_string_error_is_ignored() -> None:
    with pytest.raises(TerminalServerError) as exc_info:
        raise_for_submit_status(ServiceResponse(status_code=500, body={"error": 5}))
    assert exc_info.value.server_message is None
