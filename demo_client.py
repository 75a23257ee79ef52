"""Demo client driving one submission against the mock service.

Prints every state transition, including retries and status polling.

Run with: python demo_client.py you@example.com 10
(start the service first with: python demo_app.py)
"""

import argparse
import asyncio
import sys

from reliable_submit.adapters.http import HttpSubmissionTransport
from reliable_submit.config import ClientConfig
from reliable_submit.core.client import SubmissionClient
from reliable_submit.models import ClientState, SubmissionAttempt
from reliable_submit.observability.logging import configure_logging


def print_transition(attempt: SubmissionAttempt) -> None:
    line = f"[{attempt.state.value:>8}] {attempt.message}"
    if attempt.request_id:
        line += f"  (ID: {attempt.request_id})"
    print(line)


async def main(email: str, amount: str) -> int:
    config = ClientConfig.from_env()

    async with HttpSubmissionTransport(
        config.base_url,
        timeout=config.request_timeout_seconds,
    ) as transport:
        client = SubmissionClient(transport, config)
        client.subscribe(print_transition)
        attempt = await client.submit(email, amount)

    return 0 if attempt is not None and attempt.state is ClientState.SUCCESS else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Submit once to the mock service")
    parser.add_argument("email")
    parser.add_argument("amount")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    configure_logging(level=args.log_level, json_output=False, stream=sys.stderr)
    raise SystemExit(asyncio.run(main(args.email, args.amount)))
