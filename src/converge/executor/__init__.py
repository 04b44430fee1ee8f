"""Executor: applies plans against a provider."""

from .executor import Executor
from .readiness import AsyncReadiness, wait_until_ready

__all__ = ["Executor", "AsyncReadiness", "wait_until_ready"]
