"""Core data models for the endpoint health prober."""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple


class Category(str, Enum):
    """Terminal classification of a probe."""
    SUCCESS = "success"
    SUCCESS_NO_DATA = "success_no_data"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"

    @property
    def is_failure(self) -> bool:
        return self in FAILURE_CATEGORIES


FAILURE_CATEGORIES: FrozenSet[Category] = frozenset({
    Category.HTTP_ERROR,
    Category.TIMEOUT,
    Category.NETWORK_ERROR,
})


@dataclass(frozen=True)
class Endpoint:
    """A named endpoint from the registry."""
    key: str
    name: str
    base_url: str


@dataclass
class ProbeTask:
    """One logical probe of one endpoint."""
    endpoint: Endpoint
    remaining_retries: int = 0

    def __post_init__(self):
        if self.remaining_retries < 0:
            raise ValueError(f"remaining_retries must be >= 0, got: {self.remaining_retries}")


@dataclass
class ProbeOutcome:
    """Classified result of a probe after retries are exhausted."""
    key: str
    endpoint: Endpoint
    status: Category
    http_status: Optional[int] = None
    elapsed_ms: int = 0
    item_count: int = 0
    has_usable_data: bool = False
    error_message: Optional[str] = None
    attempts: int = 1

    @property
    def name(self) -> str:
        return self.endpoint.name

    @property
    def api(self) -> str:
        return self.endpoint.base_url


@dataclass(frozen=True)
class Report:
    """Summary of a complete run. Built once, never mutated."""
    generated_at: str  # ISO-8601 UTC
    total_count: int
    success_count: int
    no_data_count: int
    failed_count: int
    total_elapsed_ms: int
    results: Tuple[ProbeOutcome, ...]

    @property
    def successful(self) -> List[ProbeOutcome]:
        return [r for r in self.results if r.status is Category.SUCCESS]

    @property
    def no_data(self) -> List[ProbeOutcome]:
        return [r for r in self.results if r.status is Category.SUCCESS_NO_DATA]

    @property
    def failed(self) -> List[ProbeOutcome]:
        return [r for r in self.results if r.status.is_failure]
