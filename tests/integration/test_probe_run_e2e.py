"""End-to-end probe runs against mock transports and mock sites."""

import asyncio
import json
import socket
import threading
import time

import httpx
import pytest
import uvicorn

from apiprobe.mock_servers import create_mock_site
from apiprobe.models.config import ProbeConfig
from apiprobe.models.data_models import Category, Endpoint
from apiprobe.pipeline.orchestrator import ProbeOrchestrator
from apiprobe.pipeline.output import JSONReportFormatter
from apiprobe.processor import rank_by_latency


class HostRouter(httpx.AsyncBaseTransport):
    """Dispatches each request to the ASGI app registered for its host."""

    def __init__(self, apps):
        self.transports = {host: httpx.ASGITransport(app=app) for host, app in apps.items()}

    async def handle_async_request(self, request):
        return await self.transports[request.url.host].handle_async_request(request)


def _endpoint(key, name=None):
    return Endpoint(key=key, name=name or key, base_url=f"http://{key}.test/api.php/provide/vod")


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_mixed_scenario_classification():
    """A: 200 with 5 items, B: 500, C: reset then empty list, D: never responds."""
    calls = {"a": 0, "b": 0, "c": 0, "d": 0}

    async def handler(request):
        key = request.url.host.split(".")[0]
        calls[key] += 1
        if key == "a":
            return httpx.Response(200, json={"list": [{"vod_id": i} for i in range(5)]})
        if key == "b":
            return httpx.Response(500)
        if key == "c":
            if calls["c"] == 1:
                raise httpx.ReadError("Connection reset by peer", request=request)
            return httpx.Response(200, json={"list": []})
        await asyncio.sleep(10)

    config = ProbeConfig(concurrency=4, timeout=1.0, max_retries=1)
    endpoints = [_endpoint(k) for k in ("a", "b", "c", "d")]
    progress = []

    report = await ProbeOrchestrator(
        config,
        endpoints,
        on_result=lambda outcome: progress.append(outcome.key),
        transport=httpx.MockTransport(handler),
    ).run()

    by_key = {r.key: r for r in report.results}
    assert by_key["a"].status is Category.SUCCESS
    assert by_key["a"].item_count == 5
    assert by_key["b"].status is Category.HTTP_ERROR
    assert by_key["b"].http_status == 500
    assert by_key["c"].status is Category.SUCCESS_NO_DATA
    assert by_key["c"].item_count == 0
    assert by_key["c"].attempts == 2
    assert by_key["d"].status is Category.TIMEOUT

    assert calls == {"a": 1, "b": 1, "c": 2, "d": 1}
    assert (report.success_count, report.no_data_count, report.failed_count, report.total_count) == (1, 1, 2, 4)
    assert [r.key for r in report.results] == ["a", "b", "c", "d"]
    # D settles last, after its timeout
    assert progress[-1] == "d"
    assert sorted(progress) == ["a", "b", "c", "d"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_run_against_asgi_mock_sites(tmp_path):
    apps = {
        "fast.test": create_mock_site("fast", items=10),
        "slow.test": create_mock_site("slow", items=3, latency_ms=50),
        "empty.test": create_mock_site("empty", items=0),
        "broken.test": create_mock_site("broken", status_code=503),
        "garbled.test": create_mock_site("garbled", malformed=True),
        "hung.test": create_mock_site("hung", latency_ms=5000),
    }
    endpoints = [_endpoint(host.split(".")[0]) for host in apps]
    config = ProbeConfig(concurrency=2, timeout=0.5, max_retries=1)

    report = await ProbeOrchestrator(config, endpoints, transport=HostRouter(apps)).run()

    statuses = {r.key: r.status for r in report.results}
    assert statuses == {
        "fast": Category.SUCCESS,
        "slow": Category.SUCCESS,
        "empty": Category.SUCCESS_NO_DATA,
        "broken": Category.HTTP_ERROR,
        "garbled": Category.NETWORK_ERROR,
        "hung": Category.TIMEOUT,
    }
    assert report.success_count + report.no_data_count + report.failed_count == report.total_count == 6
    assert [r.key for r in rank_by_latency(report.results)][0] == "fast"

    path = tmp_path / "api-test-report.json"
    JSONReportFormatter().save(report, str(path))
    data = json.loads(path.read_text(encoding="utf-8"))
    assert [r["key"] for r in data["results"]] == ["fast", "slow", "empty", "broken", "garbled", "hung"]
    assert data["results"][3]["http_status"] == 503


@pytest.mark.integration
@pytest.mark.asyncio
async def test_real_server_and_refused_connection():
    """Probe a uvicorn-served mock site and a closed port."""
    port = _free_port()
    server = uvicorn.Server(uvicorn.Config(
        create_mock_site("live", items=4),
        host="127.0.0.1",
        port=port,
        log_level="error",
    ))
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    deadline = time.monotonic() + 5
    while not server.started and time.monotonic() < deadline:
        await asyncio.sleep(0.05)

    try:
        endpoints = [
            Endpoint(key="live", name="Live", base_url=f"http://127.0.0.1:{port}/api.php/provide/vod"),
            Endpoint(key="closed", name="Closed", base_url=f"http://127.0.0.1:{_free_port()}/api.php/provide/vod"),
        ]
        config = ProbeConfig(concurrency=2, timeout=3.0, max_retries=2)

        report = await ProbeOrchestrator(config, endpoints).run()
    finally:
        server.should_exit = True
        thread.join(timeout=5)

    live, closed = report.results
    assert live.status is Category.SUCCESS
    assert live.item_count == 4
    assert closed.status is Category.NETWORK_ERROR
    assert closed.attempts == 3
    assert closed.error_message
