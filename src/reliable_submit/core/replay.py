"""Success response construction and idempotent replay.

A submission that already reached SUCCESS is answered from its stored
record: same payload, same completion timestamp, same 200 status. The
client's classification logic cannot tell a replay from a first-time
success.

Examples:
    >>> response = replay_response(record, "a@b.com-1700000000000-k3j9x0q2z")
    >>> response.status_code
    200
    >>> response.body["timestamp"] == format_timestamp(record.timestamp)
    True
"""

from typing import Any

from reliable_submit.models import ServiceResponse, SubmissionRecord, format_timestamp

SUCCESS_MESSAGE = "Submission successful"
REPLAY_MESSAGE = "Submission already processed"


def success_body(key: str, record: SubmissionRecord, message: str) -> dict[str, Any]:
    """Build the 200 body for a SUCCESS record.

    Args:
        key: The request identity
        record: The SUCCESS record
        message: Human-readable message for the body

    Returns:
        Body with message, requestId, email, amount and timestamp
    """
    return {
        "message": message,
        "requestId": key,
        "email": record.payload.email,
        "amount": record.payload.amount,
        "timestamp": format_timestamp(record.timestamp),
    }


def replay_response(record: SubmissionRecord, key: str) -> ServiceResponse:
    """Reconstruct the success response for an already-completed submission.

    Args:
        record: The stored record
        key: The request identity

    Returns:
        A 200 ServiceResponse carrying the stored payload and timestamp

    Raises:
        ValueError: If the record is not SUCCESS
    """
    if not record.is_success:
        raise ValueError(f"Record {key} is {record.status.value}, only success can be replayed")

    return ServiceResponse(status_code=200, body=success_body(key, record, REPLAY_MESSAGE))
