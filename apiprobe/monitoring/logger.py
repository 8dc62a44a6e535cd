"""Structured logging for probe runs."""

import json
import logging
from typing import Optional


class StructuredLogger:
    """Structured logger with uniform schema."""

    def __init__(self, name: str = "apiprobe", level: str = "WARNING"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def log(self, event: str, level: int = logging.INFO, **kwargs) -> None:
        """
        Log structured event.

        Standard keys: event, key, url, attempt, status, http_status,
                      elapsed_ms, error, concurrency, endpoints
        """
        log_data = {"event": event, **kwargs}
        self.logger.log(level, json.dumps(log_data, ensure_ascii=False))

    def probe_start(self, key: str, url: str) -> None:
        self.log("probe_start", level=logging.DEBUG, key=key, url=url)

    def probe_retry(self, key: str, attempt: int, error: str) -> None:
        self.log("probe_retry", key=key, attempt=attempt, error=error)

    def probe_done(
        self,
        key: str,
        status: str,
        http_status: Optional[int],
        elapsed_ms: int,
        attempts: int,
        error: Optional[str] = None
    ) -> None:
        self.log(
            "probe_done",
            key=key,
            status=status,
            http_status=http_status,
            elapsed_ms=elapsed_ms,
            attempt=attempts,
            error=error
        )

    def run_start(self, endpoints: int, concurrency: int) -> None:
        self.log("run_start", endpoints=endpoints, concurrency=concurrency)

    def run_complete(self, endpoints: int, elapsed_ms: int) -> None:
        self.log("run_complete", endpoints=endpoints, elapsed_ms=elapsed_ms)
