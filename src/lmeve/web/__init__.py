"""Litestar web front-end for LMeve authentication."""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
