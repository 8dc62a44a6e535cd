"""Batch health prober for HTTP API endpoints."""

__version__ = "1.0.0"
