"""
Pytest configuration and shared fixtures for reliable_submit tests.
"""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from reliable_submit.models import Outcome, ServiceResponse


class VirtualClock:
    """Sleep replacement that advances virtual time instead of waiting."""

    def __init__(self) -> None:
        self.now_ms = 0.0
        self.sleeps: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now_ms += seconds * 1000
        await asyncio.sleep(0)


class ScriptedTransport:
    """SubmissionTransport returning scripted responses.

    Submit responses are consumed in order; the last one repeats. Items that
    are exceptions are raised instead of returned. Status queries are
    answered by ``status_fn``.
    """

    def __init__(
        self,
        submit_script: list[ServiceResponse | Exception] | None = None,
        status_fn: Callable[[str], ServiceResponse] | None = None,
    ) -> None:
        self.submit_script = list(submit_script or [])
        self.status_fn = status_fn
        self.submit_calls: list[str] = []
        self.payloads: list[tuple[str, float]] = []
        self.status_calls: list[str] = []

    async def submit(self, request_id: str, email: str, amount: float) -> ServiceResponse:
        self.submit_calls.append(request_id)
        self.payloads.append((email, amount))
        item = self.submit_script.pop(0) if len(self.submit_script) > 1 else self.submit_script[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def get_status(self, request_id: str) -> ServiceResponse:
        self.status_calls.append(request_id)
        if self.status_fn is None:
            raise AssertionError("unexpected status query")
        return self.status_fn(request_id)


class OutcomeSequence:
    """Decision function returning scripted outcomes; the last one repeats."""

    def __init__(self, *outcomes: Outcome) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    def __call__(self) -> Outcome:
        self.calls += 1
        return self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]


def ok_response(request_id: str = "srv-id", **extra: Any) -> ServiceResponse:
    body = {
        "message": "Submission successful",
        "requestId": request_id,
        "email": "a@b.com",
        "amount": 10.0,
        "timestamp": "2024-01-01T00:00:00.000Z",
    }
    body.update(extra)
    return ServiceResponse(status_code=200, body=body)


def unavailable_response(request_id: str = "srv-id") -> ServiceResponse:
    return ServiceResponse(
        status_code=503,
        body={"error": "Service temporarily unavailable", "requestId": request_id, "retryAfter": 1},
    )


def accepted_response(request_id: str = "srv-id", estimated_delay: int = 6000) -> ServiceResponse:
    return ServiceResponse(
        status_code=202,
        body={
            "message": "Submission accepted, processing...",
            "requestId": request_id,
            "email": "a@b.com",
            "amount": 10.0,
            "estimatedDelay": estimated_delay,
        },
    )


def status_response(status: str, request_id: str = "srv-id") -> ServiceResponse:
    return ServiceResponse(
        status_code=200,
        body={
            "requestId": request_id,
            "status": status,
            "email": "a@b.com",
            "amount": 10.0,
            "timestamp": "2024-01-01T00:00:00.000Z",
        },
    )


@pytest.fixture
def clock() -> VirtualClock:
    """Provide a fresh virtual clock."""
    return VirtualClock()


@pytest.fixture
def sequential_ids() -> Callable[[str], str]:
    """Identity factory producing <email>-1, <email>-2, ..."""
    counter = {"n": 0}

    def factory(email: str) -> str:
        counter["n"] += 1
        return f"{email}-{counter['n']}"

    return factory
