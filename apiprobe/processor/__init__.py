"""Result aggregation module."""

from .aggregator import ResultAggregator, rank_by_latency

__all__ = ["ResultAggregator", "rank_by_latency"]
