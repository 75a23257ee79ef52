"""
Reliable submission protocol for non-deterministic services.

This package provides a client that turns immediate, failed and delayed
service responses into exactly one visible result per submission, and the
mock service with idempotent replay that it interoperates with.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
