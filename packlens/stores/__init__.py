"""Durable stores backing the result cache."""

from .result_store import ResultStore

__all__ = ["ResultStore"]
