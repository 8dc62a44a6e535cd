"""Unit tests for BoundedScheduler admission and ordering."""

import asyncio
import logging

import pytest

from apiprobe.fetcher.scheduler import BoundedScheduler
from apiprobe.models.data_models import Category, ProbeOutcome, ProbeTask


def _tasks(make_endpoint, count):
    return [ProbeTask(endpoint=make_endpoint(f"ep{i}")) for i in range(count)]


def _sleeping_worker(delays, probe_counter=None):
    """Worker whose probe of ``epN`` takes ``delays[N]`` seconds."""
    async def worker(task: ProbeTask) -> ProbeOutcome:
        index = int(task.endpoint.key[2:])
        if probe_counter is not None:
            probe_counter["current"] += 1
            probe_counter["peak"] = max(probe_counter["peak"], probe_counter["current"])
        try:
            await asyncio.sleep(delays[index])
        finally:
            if probe_counter is not None:
                probe_counter["current"] -= 1
        return ProbeOutcome(key=task.endpoint.key, endpoint=task.endpoint, status=Category.SUCCESS)
    return worker


class TestBoundedScheduler:

    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError, match="concurrency_limit must be positive"):
            BoundedScheduler(0)

    @pytest.mark.asyncio
    async def test_results_keep_submission_order(self, make_endpoint):
        tasks = _tasks(make_endpoint, 6)
        # later tasks finish first
        delays = [0.06, 0.05, 0.04, 0.03, 0.02, 0.01]
        completed = []

        scheduler = BoundedScheduler(6)
        results = await scheduler.run(
            tasks,
            _sleeping_worker(delays),
            on_complete=lambda outcome: completed.append(outcome.key),
        )

        assert [r.key for r in results] == [f"ep{i}" for i in range(6)]
        assert completed == [f"ep{i}" for i in reversed(range(6))]

    @pytest.mark.asyncio
    async def test_peak_in_flight_never_exceeds_limit(self, make_endpoint):
        tasks = _tasks(make_endpoint, 20)
        delays = [0.01 * ((i * 7) % 5 + 1) for i in range(20)]
        counter = {"current": 0, "peak": 0}

        scheduler = BoundedScheduler(3)
        results = await scheduler.run(tasks, _sleeping_worker(delays, counter))

        assert len(results) == 20
        assert counter["peak"] == 3
        assert scheduler.peak_in_flight == 3
        assert scheduler.in_flight == 0

    @pytest.mark.asyncio
    async def test_limit_one_is_sequential(self, make_endpoint):
        tasks = _tasks(make_endpoint, 5)
        delays = [0.02, 0.01, 0.02, 0.01, 0.0]
        completed = []
        counter = {"current": 0, "peak": 0}

        scheduler = BoundedScheduler(1)
        await scheduler.run(
            tasks,
            _sleeping_worker(delays, counter),
            on_complete=lambda outcome: completed.append(outcome.key),
        )

        assert counter["peak"] == 1
        assert completed == [f"ep{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_limit_above_task_count_fans_out(self, make_endpoint):
        tasks = _tasks(make_endpoint, 4)
        counter = {"current": 0, "peak": 0}

        scheduler = BoundedScheduler(50)
        await scheduler.run(tasks, _sleeping_worker([0.02] * 4, counter))

        assert counter["peak"] == 4

    @pytest.mark.asyncio
    async def test_slot_refilled_on_completion(self, make_endpoint):
        # ep0 is slow; with two slots the other four drain through the second slot
        tasks = _tasks(make_endpoint, 5)
        delays = [0.2, 0.01, 0.01, 0.01, 0.01]
        completed = []

        scheduler = BoundedScheduler(2)
        await scheduler.run(
            tasks,
            _sleeping_worker(delays),
            on_complete=lambda outcome: completed.append(outcome.key),
        )

        assert completed[-1] == "ep0"
        assert completed[:4] == ["ep1", "ep2", "ep3", "ep4"]

    @pytest.mark.asyncio
    async def test_empty_task_list(self):
        results = await BoundedScheduler(3).run([], _sleeping_worker([]))
        assert results == []

    @pytest.mark.asyncio
    async def test_on_complete_called_once_per_task(self, make_endpoint):
        tasks = _tasks(make_endpoint, 7)
        completed = []

        await BoundedScheduler(2).run(
            tasks,
            _sleeping_worker([0.0] * 7),
            on_complete=lambda outcome: completed.append(outcome.key),
        )

        assert sorted(completed) == sorted(t.endpoint.key for t in tasks)

    @pytest.mark.asyncio
    async def test_failing_on_complete_does_not_abort_run(self, make_endpoint, caplog):
        tasks = _tasks(make_endpoint, 4)
        completed = []

        def on_complete(outcome):
            completed.append(outcome.key)
            if outcome.key == "ep1":
                raise OSError("broken pipe")

        with caplog.at_level(logging.WARNING, logger="apiprobe"):
            results = await BoundedScheduler(2).run(
                tasks,
                _sleeping_worker([0.0] * 4),
                on_complete=on_complete,
            )

        assert [r.key for r in results] == ["ep0", "ep1", "ep2", "ep3"]
        assert sorted(completed) == ["ep0", "ep1", "ep2", "ep3"]
        assert "progress_callback_failed" in caplog.text
        assert "broken pipe" in caplog.text

    @pytest.mark.asyncio
    async def test_worker_fault_propagates_and_cancels_others(self, make_endpoint):
        tasks = _tasks(make_endpoint, 4)
        cancelled = []

        async def worker(task):
            if task.endpoint.key == "ep1":
                raise RuntimeError("boom")
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(task.endpoint.key)
                raise

        scheduler = BoundedScheduler(4)
        with pytest.raises(RuntimeError, match="boom"):
            await scheduler.run(tasks, worker)

        assert sorted(cancelled) == ["ep0", "ep2", "ep3"]

    @pytest.mark.asyncio
    async def test_cancelling_run_skips_queued_tasks(self, make_endpoint):
        tasks = _tasks(make_endpoint, 6)
        started = []

        async def worker(task):
            started.append(task.endpoint.key)
            await asyncio.sleep(5)

        scheduler = BoundedScheduler(2)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(scheduler.run(tasks, worker), timeout=0.05)

        assert started == ["ep0", "ep1"]
        assert scheduler.in_flight == 0
