"""Async probing with bounded concurrency, timeouts and retries."""

from .http_client import AsyncHTTPClient
from .probe_executor import ProbeExecutor
from .scheduler import BoundedScheduler

__all__ = ["AsyncHTTPClient", "BoundedScheduler", "ProbeExecutor"]
