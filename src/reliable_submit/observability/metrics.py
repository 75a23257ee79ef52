"""Prometheus metrics for the reliable submission protocol.

Server side:

- Submit responses by outcome class and status code
- Status queries by result
- Scheduled delayed completions gauge

Client side:

- Retries by cause
- Terminal submissions by final state

Examples:
    >>> record_submit("transient_failure", 503)
    >>> record_client_retry("network")
"""

from prometheus_client import Counter, Gauge

# Labels: outcome (success, replay, transient_failure, delayed, invalid), status_code
submit_requests_total = Counter(
    "reliable_submit_requests_total",
    "Total number of submit requests answered by the service",
    ["outcome", "status_code"],
)

# Labels: result (found, not_found)
status_queries_total = Counter(
    "reliable_submit_status_queries_total",
    "Total number of status queries answered by the service",
    ["result"],
)

pending_completions = Gauge(
    "reliable_submit_pending_completions",
    "Number of delayed completions currently scheduled",
)

# Labels: cause (unavailable, network)
client_retries_total = Counter(
    "reliable_submit_client_retries_total",
    "Total number of submission retries performed by clients",
    ["cause"],
)

# Labels: state (success, error)
client_terminal_total = Counter(
    "reliable_submit_client_terminal_total",
    "Total number of client submissions reaching a terminal state",
    ["state"],
)


def record_submit(outcome: str, status_code: int) -> None:
    """Record a submit response.

    Args:
        outcome: The outcome class (success, replay, transient_failure, delayed, invalid)
        status_code: HTTP status code of the response
    """
    submit_requests_total.labels(outcome=outcome, status_code=str(status_code)).inc()


def record_status_query(found: bool) -> None:
    """Record a status query and whether the identity was known."""
    status_queries_total.labels(result="found" if found else "not_found").inc()


def increment_pending_completions() -> None:
    pending_completions.inc()


def decrement_pending_completions() -> None:
    pending_completions.dec()


def record_client_retry(cause: str) -> None:
    """Record a client retry.

    Args:
        cause: "unavailable" for 503 responses, "network" for transport failures
    """
    client_retries_total.labels(cause=cause).inc()


def record_client_terminal(state: str) -> None:
    """Record a client submission reaching a terminal state."""
    client_terminal_total.labels(state=state).inc()
