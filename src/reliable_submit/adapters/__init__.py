"""Adapters connecting the protocol to HTTP.

- asgi: FastAPI application exposing the mock service
- http: httpx transport used by the submission client
"""
