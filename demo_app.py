"""Demo mock submission service.

Each submission randomly succeeds, fails with 503, or is accepted with 202
and completes a few seconds later. Resubmitting a completed request id
replays the original success.

Run with: python demo_app.py
Then submit with: python demo_client.py you@example.com 10
"""

import uvicorn

from reliable_submit.adapters.asgi import create_app
from reliable_submit.config import ServerConfig
from reliable_submit.observability.logging import configure_logging

config = ServerConfig.from_env()
configure_logging(level=config.log_level, json_output=config.json_logs)

app = create_app(config=config)


if __name__ == "__main__":
    print("=" * 60)
    print("Reliable Submission Mock Service")
    print("=" * 60)
    print(f"\nStarting server at http://{config.host}:{config.port}")
    print("\nTry these commands:")
    print(f"  curl http://{config.host}:{config.port}/health")
    print("  python demo_client.py you@example.com 10")
    print("\nPress Ctrl+C to stop")
    print("=" * 60)
    print()

    uvicorn.run(app, host=config.host, port=config.port)
