"""FastAPI application exposing the mock submission service.

Endpoints:
    POST /api/submit                    submit {email, amount} with X-Request-ID
    GET  /api/status/{request_id:path}  current status of a request identity
    GET  /health                        liveness check

Examples:
    Running with uvicorn::

        import uvicorn
        from reliable_submit.adapters.asgi import create_app

        uvicorn.run(create_app(), host="127.0.0.1", port=3001)

    Forcing an outcome in tests::

        from fastapi.testclient import TestClient
        from reliable_submit.core.simulator import OutcomeSimulator
        from reliable_submit.models import Outcome

        simulator = OutcomeSimulator(decide=lambda: Outcome.IMMEDIATE_SUCCESS)
        client = TestClient(create_app(simulator=simulator))
        client.post("/api/submit", json={"email": "a@b.com", "amount": 10})
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from starlette.requests import Request
from starlette.responses import JSONResponse

from reliable_submit import __version__
from reliable_submit.config import ServerConfig
from reliable_submit.core.simulator import OutcomeSimulator
from reliable_submit.models import SubmissionPayload
from reliable_submit.observability.logging import get_logger
from reliable_submit.observability.metrics import record_submit
from reliable_submit.utils.headers import extract_request_id, fallback_request_id

logger = get_logger(__name__)

MISSING_FIELDS_ERROR = "Email and amount are required"


class SubmitBody(BaseModel):
    """Submit request body; both fields are checked by the handler."""

    email: str | None = None
    amount: float | None = None


def create_app(
    simulator: OutcomeSimulator | None = None,
    config: ServerConfig | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        simulator: Outcome simulator to serve (built from config if omitted)
        config: Server configuration (defaults if omitted)

    Returns:
        The configured FastAPI app; pending delayed completions are
        cancelled on shutdown
    """
    config = config or ServerConfig()
    simulator = simulator or OutcomeSimulator(config=config)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await simulator.shutdown()

    app = FastAPI(
        title="Reliable Submission Mock Service",
        description="Mock service with idempotent, non-deterministic submissions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.simulator = simulator

    @app.exception_handler(RequestValidationError)
    async def invalid_body(_request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("submission.invalid_body", errors=len(exc.errors()))
        record_submit("invalid", 400)
        return JSONResponse(status_code=400, content={"error": MISSING_FIELDS_ERROR})

    @app.post("/api/submit")
    async def submit(request: Request, body: SubmitBody | None = None) -> JSONResponse:
        """Submit a payload under the caller's request identity."""
        if body is None or not body.email or not body.amount:
            record_submit("invalid", 400)
            return JSONResponse(status_code=400, content={"error": MISSING_FIELDS_ERROR})

        key = extract_request_id(dict(request.headers)) or fallback_request_id(body.email)
        result = await simulator.submit(
            key,
            SubmissionPayload(email=body.email, amount=body.amount),
        )
        return JSONResponse(status_code=result.status_code, content=result.body)

    @app.get("/api/status/{request_id:path}")
    async def status(request_id: str) -> JSONResponse:
        """Report the status of a request identity."""
        result = await simulator.status(request_id)
        return JSONResponse(status_code=result.status_code, content=result.body)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
