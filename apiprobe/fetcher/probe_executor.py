"""Single-endpoint probe with per-attempt timeout and bounded retry."""

import asyncio
import time
from typing import Any, Callable, Optional

import httpx

from apiprobe.fetcher.http_client import AsyncHTTPClient
from apiprobe.models.data_models import Category, Endpoint, ProbeOutcome, ProbeTask
from apiprobe.monitoring.logger import StructuredLogger


def count_items(payload: Any, list_field: str = "list") -> int:
    """
    Length of the list held in ``payload[list_field]``.

    Anything else (non-object body, missing field, non-list value) counts as
    zero items.
    """
    if isinstance(payload, dict):
        items = payload.get(list_field)
        if isinstance(items, list):
            return len(items)
    return 0


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__


class ProbeExecutor:
    """
    Probes one endpoint and classifies the result.

    Attempt state machine:
    - Pending -> InFlight on dispatch
    - InFlight -> Terminal on timeout, HTTP error, or a parsed 2xx body
    - InFlight -> Retry -> InFlight on a transport failure while the retry
      budget lasts, otherwise Terminal as NETWORK_ERROR

    Every failure is returned as a classified ProbeOutcome; nothing raises
    past ``probe``.
    """

    def __init__(
        self,
        http_client: AsyncHTTPClient,
        query: str = "?ac=list",
        timeout: float = 8.0,
        list_field: str = "list",
        logger: Optional[StructuredLogger] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize executor.

        Args:
            http_client: Client used for every attempt
            query: Suffix appended to each endpoint's base URL
            timeout: Per-attempt timeout in seconds
            list_field: Response field inspected for the item list
            logger: Optional structured logger
            clock: Monotonic clock in seconds
        """
        self.http_client = http_client
        self.query = query
        self.timeout = timeout
        self.list_field = list_field
        self.logger = logger
        self._now = clock

    async def run(self, task: ProbeTask) -> ProbeOutcome:
        """Probe the task's endpoint with the task's retry budget."""
        return await self.probe(task.endpoint, task.remaining_retries)

    async def probe(self, endpoint: Endpoint, max_retries: int = 0) -> ProbeOutcome:
        """
        Probe an endpoint until a terminal classification is reached.

        Timeouts and non-2xx responses are terminal on first occurrence.
        Transport failures and undecodable 2xx bodies are re-issued
        immediately, at most ``max_retries`` times.

        Args:
            endpoint: Endpoint to probe
            max_retries: Retry budget for transport failures

        Returns:
            Classified outcome; elapsed time covers every attempt made
        """
        url = endpoint.base_url + self.query
        remaining = max_retries
        attempts = 0
        start = self._now()

        if self.logger:
            self.logger.probe_start(key=endpoint.key, url=url)

        while True:
            attempts += 1
            try:
                response = await asyncio.wait_for(
                    self.http_client.get(url),
                    timeout=self.timeout
                )
            except (asyncio.TimeoutError, httpx.TimeoutException):
                outcome = self._outcome(endpoint, Category.TIMEOUT, start, attempts, error="timeout")
                break
            except httpx.RequestError as e:
                if remaining > 0:
                    remaining -= 1
                    self._log_retry(endpoint, attempts, _describe(e))
                    continue
                outcome = self._outcome(endpoint, Category.NETWORK_ERROR, start, attempts, error=_describe(e))
                break
            except Exception as e:
                # Unexpected failure (e.g. invalid URL); not worth retrying
                outcome = self._outcome(endpoint, Category.NETWORK_ERROR, start, attempts, error=_describe(e))
                break

            if not response.is_success:
                outcome = self._outcome(
                    endpoint,
                    Category.HTTP_ERROR,
                    start,
                    attempts,
                    http_status=response.status_code,
                    error=f"HTTP {response.status_code}"
                )
                break

            try:
                payload = response.json()
            except ValueError as e:
                error = f"malformed payload: {_describe(e)}"
                if remaining > 0:
                    remaining -= 1
                    self._log_retry(endpoint, attempts, error)
                    continue
                outcome = self._outcome(
                    endpoint,
                    Category.NETWORK_ERROR,
                    start,
                    attempts,
                    http_status=response.status_code,
                    error=error
                )
                break

            item_count = count_items(payload, self.list_field)
            outcome = self._outcome(
                endpoint,
                Category.SUCCESS if item_count > 0 else Category.SUCCESS_NO_DATA,
                start,
                attempts,
                http_status=response.status_code,
                item_count=item_count
            )
            break

        if self.logger:
            self.logger.probe_done(
                key=endpoint.key,
                status=outcome.status.value,
                http_status=outcome.http_status,
                elapsed_ms=outcome.elapsed_ms,
                attempts=outcome.attempts,
                error=outcome.error_message
            )

        return outcome

    def _outcome(
        self,
        endpoint: Endpoint,
        status: Category,
        start: float,
        attempts: int,
        http_status: Optional[int] = None,
        item_count: int = 0,
        error: Optional[str] = None
    ) -> ProbeOutcome:
        elapsed_ms = max(0, int(round((self._now() - start) * 1000)))
        return ProbeOutcome(
            key=endpoint.key,
            endpoint=endpoint,
            status=status,
            http_status=http_status,
            elapsed_ms=elapsed_ms,
            item_count=item_count,
            has_usable_data=item_count > 0,
            error_message=error,
            attempts=attempts
        )

    def _log_retry(self, endpoint: Endpoint, attempt: int, error: str) -> None:
        if self.logger:
            self.logger.probe_retry(key=endpoint.key, attempt=attempt, error=error)
