"""Bounded-concurrency scheduler for probe tasks."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from apiprobe.models.data_models import ProbeOutcome, ProbeTask
from apiprobe.monitoring.logger import StructuredLogger


Worker = Callable[[ProbeTask], Awaitable[ProbeOutcome]]
CompletionCallback = Callable[[ProbeOutcome], None]


class BoundedScheduler:
    """
    Runs probe tasks with at most ``concurrency_limit`` in flight.

    A fixed pool of worker coroutines drains a shared queue; a worker picks
    the next task as soon as its current one settles, so throughput follows
    the fastest completions. Results are stored by submission index.
    """

    def __init__(self, concurrency_limit: int, logger: Optional[StructuredLogger] = None):
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be positive, got: {concurrency_limit}")
        self.concurrency_limit = concurrency_limit
        self.logger = logger or StructuredLogger()
        self.in_flight = 0
        self.peak_in_flight = 0

    async def run(
        self,
        tasks: Sequence[ProbeTask],
        worker: Worker,
        on_complete: Optional[CompletionCallback] = None
    ) -> List[ProbeOutcome]:
        """
        Run every task to a terminal outcome.

        Args:
            tasks: Tasks in submission order
            worker: Coroutine function turning a task into an outcome
            on_complete: Called once per task, in completion order; its errors are logged, not raised

        Returns:
            Outcomes in submission order

        Raises:
            Exception: Whatever ``worker`` raises; remaining workers are cancelled
        """
        tasks = list(tasks)
        results: List[Optional[ProbeOutcome]] = [None] * len(tasks)
        self.in_flight = 0
        self.peak_in_flight = 0

        queue: asyncio.Queue = asyncio.Queue()
        for index, task in enumerate(tasks):
            queue.put_nowait((index, task))

        async def drain() -> None:
            while True:
                try:
                    index, task = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return

                self.in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
                try:
                    outcome = await worker(task)
                finally:
                    self.in_flight -= 1

                results[index] = outcome
                if on_complete:
                    try:
                        on_complete(outcome)
                    except Exception as e:
                        # progress output never decides the run
                        self.logger.log(
                            "progress_callback_failed",
                            level=logging.WARNING,
                            key=outcome.key,
                            error=str(e)
                        )

        pool = [
            asyncio.create_task(drain())
            for _ in range(min(self.concurrency_limit, len(tasks)))
        ]
        try:
            await asyncio.gather(*pool)
        except BaseException:
            for worker_task in pool:
                worker_task.cancel()
            await asyncio.gather(*pool, return_exceptions=True)
            raise

        return results
