"""Aggregator turning classified probe outcomes into a run report."""

import time
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from apiprobe.models.data_models import Category, ProbeOutcome, Report


def rank_by_latency(outcomes: Iterable[ProbeOutcome]) -> List[ProbeOutcome]:
    """
    Successful outcomes ordered fastest first.

    Display only: ties keep submission order because ``sorted`` is stable,
    and the input sequence is left untouched.
    """
    successful = [o for o in outcomes if o.status is Category.SUCCESS]
    return sorted(successful, key=lambda o: o.elapsed_ms)


class ResultAggregator:
    """
    Builds the single Report for a run.

    The aggregator owns the run's wall-clock timer; ``total_elapsed_ms`` is
    the time between ``start_timer`` and ``stop_timer``, not the sum of the
    individual probe durations.
    """

    def __init__(self):
        self._start_time: float = 0.0
        self._end_time: float = 0.0

    def start_timer(self) -> None:
        """Start timing the run."""
        self._start_time = time.monotonic()
        self._end_time = 0.0

    def stop_timer(self) -> None:
        """Stop timing the run."""
        self._end_time = time.monotonic()

    @property
    def elapsed_ms(self) -> int:
        if self._end_time <= 0:
            return 0
        return max(0, int(round((self._end_time - self._start_time) * 1000)))

    def aggregate(
        self,
        outcomes: Sequence[ProbeOutcome],
        total_elapsed_ms: Optional[int] = None,
        generated_at: Optional[str] = None
    ) -> Report:
        """
        Partition outcomes and produce the report.

        Args:
            outcomes: Outcomes in submission order
            total_elapsed_ms: Run duration; defaults to the timer reading
            generated_at: ISO-8601 timestamp; defaults to now (UTC)

        Returns:
            Report whose results keep the given order
        """
        results = tuple(outcomes)

        success_count = sum(1 for o in results if o.status is Category.SUCCESS)
        no_data_count = sum(1 for o in results if o.status is Category.SUCCESS_NO_DATA)
        failed_count = sum(1 for o in results if o.status.is_failure)

        return Report(
            generated_at=generated_at or datetime.now(timezone.utc).isoformat(),
            total_count=len(results),
            success_count=success_count,
            no_data_count=no_data_count,
            failed_count=failed_count,
            total_elapsed_ms=self.elapsed_ms if total_elapsed_ms is None else total_elapsed_ms,
            results=results
        )
