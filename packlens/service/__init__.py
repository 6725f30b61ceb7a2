"""HTTP service mode for the packlens result cache."""

from .app import create_app, run_service

__all__ = ["create_app", "run_service"]
