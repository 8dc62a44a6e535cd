"""Mock resource sites for testing."""

from .app import create_broken_site, create_empty_site, create_healthy_site, create_mock_site

__all__ = ["create_mock_site", "create_healthy_site", "create_empty_site", "create_broken_site"]
