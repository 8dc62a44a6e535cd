"""Pytest configuration and shared fixtures."""

import json

import pytest

from apiprobe.models.config import ProbeConfig
from apiprobe.models.data_models import Category, Endpoint, ProbeOutcome


@pytest.fixture
def sample_config():
    """Provide a sample configuration for testing."""
    return ProbeConfig(
        concurrency=4,
        timeout=0.5,
        max_retries=1,
        test_query="?ac=list",
        log_level="WARNING",
    )


@pytest.fixture
def make_endpoint():
    """Factory for endpoints on distinct hosts."""
    def _make(key: str, name: str = None) -> Endpoint:
        return Endpoint(
            key=key,
            name=name or key.upper(),
            base_url=f"http://{key}.test/api.php/provide/vod",
        )
    return _make


@pytest.fixture
def make_outcome(make_endpoint):
    """Factory for classified outcomes."""
    def _make(key: str, status: Category, elapsed_ms: int = 100, item_count: int = 0, **kwargs) -> ProbeOutcome:
        return ProbeOutcome(
            key=key,
            endpoint=make_endpoint(key),
            status=status,
            elapsed_ms=elapsed_ms,
            item_count=item_count,
            has_usable_data=item_count > 0,
            **kwargs,
        )
    return _make


@pytest.fixture
def registry_file(tmp_path):
    """Write an endpoint registry document and return its path."""
    def _write(sites: dict, section: str = "api_site"):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({section: sites}, ensure_ascii=False), encoding="utf-8")
        return path
    return _write
