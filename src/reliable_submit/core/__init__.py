"""Core protocol logic.

This package contains both halves of the reliable submission protocol:
- Simulator: server-side outcome draw and asynchronous completion
- Replay: success responses rebuilt from stored records
- Client: submission state machine with retry and backoff
- Poller: status polling with an exhaustion policy
"""

from reliable_submit.core.client import SubmissionClient
from reliable_submit.core.poller import StatusPoller
from reliable_submit.core.simulator import OutcomeSimulator

__all__ = ["SubmissionClient", "StatusPoller", "OutcomeSimulator"]
