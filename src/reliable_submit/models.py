"""Core type definitions and models for the reliable submission protocol.

This module provides the data structures shared by the server-side
simulation and the client-side state machine: record and client states,
the server-held submission record, the client-held submission attempt and
the status/body pair exchanged over the wire.

Examples:
    Creating a pending record::

        from datetime import UTC, datetime
        from reliable_submit.models import (
            SubmissionPayload,
            SubmissionRecord,
            SubmissionStatus,
        )

        record = SubmissionRecord(
            payload=SubmissionPayload(email="a@b.com", amount=10),
            status=SubmissionStatus.PENDING,
            timestamp=datetime.now(UTC),
        )

    Inspecting a client snapshot::

        attempt = client.snapshot()
        if attempt.state is ClientState.ERROR:
            print(attempt.message)
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SubmissionStatus(str, Enum):
    """Server-side status of a submission record.

    Attributes:
        PENDING: Seen but not (yet) completed.
        SUCCESS: Completed; the record is immutable from here on.
    """

    PENDING = "pending"
    SUCCESS = "success"


class Outcome(str, Enum):
    """Outcome class drawn by the simulator for a non-replayed submission."""

    IMMEDIATE_SUCCESS = "immediate_success"
    TRANSIENT_FAILURE = "transient_failure"
    DELAYED_SUCCESS = "delayed_success"


class ClientState(str, Enum):
    """States of the client-side submission state machine.

    Attributes:
        IDLE: No submission in flight.
        PENDING: A submit request (or its backoff wait) is in progress.
        POLLING: The service accepted the submission; waiting on status polls.
        SUCCESS: Terminal success.
        ERROR: Terminal failure.
    """

    IDLE = "idle"
    PENDING = "pending"
    POLLING = "polling"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ClientState.SUCCESS, ClientState.ERROR)

    @property
    def is_busy(self) -> bool:
        return self in (ClientState.PENDING, ClientState.POLLING)


class SubmissionPayload(BaseModel):
    """The semantic inputs of one submission."""

    email: str = Field(..., min_length=1, examples=["a@b.com"])
    amount: float = Field(..., examples=[10, 12.5])


class SubmissionRecord(BaseModel):
    """Server-held record of a submission, keyed by request identity.

    Attributes:
        payload: The email/amount pair the submission carried.
        status: PENDING until completed, then SUCCESS.
        timestamp: Creation time while pending; completion time once SUCCESS.
    """

    payload: SubmissionPayload
    status: SubmissionStatus = Field(
        ...,
        description="Current status of the submission",
        examples=[SubmissionStatus.PENDING, SubmissionStatus.SUCCESS],
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Creation time, or completion time once SUCCESS",
    )

    @property
    def is_success(self) -> bool:
        return self.status is SubmissionStatus.SUCCESS


class SubmissionAttempt(BaseModel):
    """Client-held, per-submission state driven by SubmissionClient.

    Attributes:
        identity: Request identity shared by every attempt of this submission.
        attempt_count: Number of retries performed so far.
        state: Current state machine state.
        message: Human-readable status line for the user.
        request_id: Identity confirmed by the service, once known.
    """

    identity: str | None = None
    attempt_count: int = Field(default=0, ge=0)
    state: ClientState = ClientState.IDLE
    message: str = ""
    request_id: str | None = None


class ServiceResponse(BaseModel):
    """An HTTP status code with its decoded JSON body.

    Used both as the result of simulator operations on the server and as the
    result of transport calls on the client.
    """

    status_code: int = Field(..., ge=100, le=599, examples=[200, 202, 503])
    body: dict[str, Any] = Field(default_factory=dict)

    @field_validator("body", mode="before")
    @classmethod
    def validate_body(cls, v: Any) -> dict[str, Any]:
        """Treat a missing or non-object body as empty."""
        if not isinstance(v, dict):
            return {}
        return v


def format_timestamp(value: datetime) -> str:
    """Render a datetime as an ISO-8601 UTC string with millisecond precision.

    Examples:
        >>> format_timestamp(datetime(2024, 1, 1, tzinfo=UTC))
        '2024-01-01T00:00:00.000Z'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
