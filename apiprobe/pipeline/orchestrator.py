"""Run orchestrator coordinating the probe and report phases."""

import asyncio
from typing import Callable, List, Optional

import httpx

from apiprobe.fetcher.http_client import AsyncHTTPClient
from apiprobe.fetcher.probe_executor import ProbeExecutor
from apiprobe.fetcher.scheduler import BoundedScheduler
from apiprobe.models.config import ProbeConfig
from apiprobe.models.data_models import Endpoint, ProbeOutcome, ProbeTask, Report
from apiprobe.monitoring.logger import StructuredLogger
from apiprobe.processor.aggregator import ResultAggregator


class ProbeOrchestrator:
    """Orchestrates one complete probe run."""

    def __init__(
        self,
        config: ProbeConfig,
        endpoints: List[Endpoint],
        on_result: Optional[Callable[[ProbeOutcome], None]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize orchestrator.

        Args:
            config: Prober configuration
            endpoints: Endpoints in registry order
            on_result: Progress callback, called once per endpoint as it settles
            transport: Optional httpx transport override
        """
        self.config = config
        self.endpoints = list(endpoints)
        self.on_result = on_result
        self.transport = transport
        self.logger = StructuredLogger(level=config.log_level)
        self.scheduler = BoundedScheduler(config.concurrency, logger=self.logger)

    def build_tasks(self) -> List[ProbeTask]:
        """One task per endpoint, in registry order."""
        return [
            ProbeTask(endpoint=endpoint, remaining_retries=self.config.max_retries)
            for endpoint in self.endpoints
        ]

    async def run(self) -> Report:
        """
        Run every probe and build the report.

        Enforces total_timeout when configured; on expiry every in-flight
        probe is cancelled and no report is produced.

        Returns:
            Report covering every endpoint exactly once

        Raises:
            asyncio.TimeoutError: If the run exceeds total_timeout
        """
        if self.config.total_timeout is None:
            return await self._run_probes()

        try:
            return await asyncio.wait_for(
                self._run_probes(),
                timeout=self.config.total_timeout
            )
        except asyncio.TimeoutError:
            self.logger.log("run_timeout", timeout=self.config.total_timeout)
            raise

    async def _run_probes(self) -> Report:
        """Internal run without the deadline wrapper."""
        tasks = self.build_tasks()
        aggregator = ResultAggregator()

        self.logger.run_start(endpoints=len(tasks), concurrency=self.config.concurrency)
        aggregator.start_timer()

        async with AsyncHTTPClient(
            connect_timeout=self.config.timeout,
            read_timeout=self.config.timeout,
            headers=self.config.headers,
            transport=self.transport,
            max_connections=self.config.concurrency
        ) as http_client:
            executor = ProbeExecutor(
                http_client,
                query=self.config.test_query,
                timeout=self.config.timeout,
                list_field=self.config.list_field,
                logger=self.logger
            )
            outcomes = await self.scheduler.run(tasks, executor.run, on_complete=self.on_result)

        aggregator.stop_timer()
        self.logger.run_complete(endpoints=len(outcomes), elapsed_ms=aggregator.elapsed_ms)

        return aggregator.aggregate(outcomes)
