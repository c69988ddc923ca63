"""
Buildkite API client module.

Retrieves complete, paginated build listings from the Buildkite REST API.
"""

from .client import BuildsQuery, Page, fetch_page, list_builds, parse_link_header

__all__ = ["BuildsQuery", "Page", "fetch_page", "list_builds", "parse_link_header"]
