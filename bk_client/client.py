"""
HTTP client for the Buildkite builds API.

Fetches pages of builds with requests and follows the Link header until the
API stops returning a "next" relation.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import requests

from bk_common.config import DEFAULT_API_URL
from bk_common.exceptions import ContinuationParseError, FetchError, RetrievalError
from bk_common.models import Build, format_timestamp

logger = logging.getLogger(__name__)

PER_PAGE = 100
DEFAULT_TIMEOUT = 30.0

_ENTRY_SPLIT = re.compile(r",\s*(?=<)")
_ENTRY_PATTERN = re.compile(r"^\s*<([^<>]*)>\s*(.*)$", re.DOTALL)


@dataclass(frozen=True)
class BuildsQuery:
    """
    Filters for the organization builds endpoint.

    Unset filters are left out of the query string.
    """

    created_from: datetime | None = None
    created_to: datetime | None = None
    finished_from: datetime | None = None
    state: str | None = None
    per_page: int = PER_PAGE

    def to_params(self) -> dict[str, Any]:
        """Convert the query to request parameters for the first page."""
        params: dict[str, Any] = {"per_page": self.per_page, "page": 1}
        if self.created_from is not None:
            params["created_from"] = format_timestamp(self.created_from)
        if self.created_to is not None:
            params["created_to"] = format_timestamp(self.created_to)
        if self.finished_from is not None:
            params["finished_from"] = format_timestamp(self.finished_from)
        if self.state:
            params["state"] = self.state
        return params


@dataclass
class Page:
    """One decoded page of builds and the URL of the following page, if any."""

    builds: list[Build] = field(default_factory=list)
    next_url: str | None = None


def auth_headers(access_token: str) -> dict[str, str]:
    """Build the Authorization header for an API access token."""
    return {"Authorization": f"Bearer {access_token}"}


def parse_link_header(header: str | None) -> dict[str, str]:
    """
    Parse a Link header into a mapping of relation to URL.

    Args:
        header: Raw header value, e.g.
            '<https://api.buildkite.com/v2/...&page=2>; rel="next", <...>; rel="last"'

    Returns:
        dict: rel -> URL. Empty when the header is missing or blank.

    Raises:
        ContinuationParseError: If an entry is not "<url>" followed by
            ";"-separated key=value parameters

    A rel attribute may hold several space separated relation types; each
    one is mapped to the entry's URL. The first entry for a relation wins.
    """
    links: dict[str, str] = {}
    if header is None or not header.strip():
        return links

    for entry in _ENTRY_SPLIT.split(header.strip()):
        match = _ENTRY_PATTERN.match(entry)
        if match is None:
            raise ContinuationParseError(header, "Link entry has no <url> target")
        target, tail = match.groups()
        tail = tail.strip()
        if tail and not tail.startswith(";"):
            raise ContinuationParseError(
                header, f"Unexpected text after <url> target: {tail!r}"
            )
        parts = [part.strip() for part in tail.split(";")]

        rels: list[str] = []
        for param in parts[1:]:
            if not param:
                continue
            key, sep, value = param.partition("=")
            if not sep or not key.strip():
                raise ContinuationParseError(
                    header, f"Link parameter {param!r} is not key=value"
                )
            if key.strip().lower() == "rel":
                rels.extend(value.strip().strip('"').split())

        for rel in rels:
            links.setdefault(rel.lower(), target)

    return links


def fetch_page(
    url: str,
    access_token: str,
    params: dict[str, Any] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Page:
    """
    Fetch and decode a single page of builds.

    Args:
        url: Page URL (the first page URL, or a "next" URL from a Link header)
        access_token: Buildkite API access token
        params: Query parameters, only for the first page
        timeout: Seconds before the request is abandoned

    Returns:
        Page: decoded builds and the next page URL (None on the last page)

    Raises:
        FetchError: If the API answers with a non-success status
        RetrievalError: If the request fails or the body cannot be decoded
        ContinuationParseError: If the Link header is malformed
    """
    try:
        response = requests.get(
            url, params=params, headers=auth_headers(access_token), timeout=timeout
        )
    except requests.exceptions.RequestException as e:
        raise RetrievalError(url, f"Error requesting builds: {e}") from e

    if not response.ok:
        raise FetchError(url, response.status_code)

    try:
        payload = response.json()
    except ValueError as e:
        raise RetrievalError(url, f"Invalid JSON in builds response: {e}") from e

    if not isinstance(payload, list):
        raise RetrievalError(
            url, f"Expected a list of builds, got {type(payload).__name__}"
        )

    try:
        builds = [Build.from_dict(item) for item in payload]
    except (KeyError, TypeError, ValueError) as e:
        raise RetrievalError(url, f"Malformed build in response: {e!r}") from e

    links = parse_link_header(response.headers.get("Link"))
    return Page(builds=builds, next_url=links.get("next"))


def list_builds(
    org_slug: str,
    access_token: str,
    query: BuildsQuery | None = None,
    api_base_url: str = DEFAULT_API_URL,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[Build]:
    """
    Retrieve every build matching a query, following pagination to the end.

    Args:
        org_slug: Buildkite organization slug
        access_token: Buildkite API access token
        query: Filters for the builds endpoint (defaults to no filters)
        api_base_url: Base URL of the Buildkite REST API
        timeout: Seconds before each page request is abandoned

    Returns:
        list[Build]: builds from all pages, in page order

    Raises:
        RetrievalError: On the first page that fails; no partial result is
            returned since partial data would skew the counts
        ContinuationParseError: If a Link header is malformed

    There is no page limit. The API's Link chain is expected to terminate.
    """
    query = query or BuildsQuery()
    url: str | None = f"{api_base_url.rstrip('/')}/organizations/{org_slug}/builds"
    params: dict[str, Any] | None = query.to_params()

    builds: list[Build] = []
    page_count = 0
    while url:
        page = fetch_page(url, access_token, params=params, timeout=timeout)
        builds.extend(page.builds)
        page_count += 1
        logger.debug(
            f"Fetched page {page_count} with {len(page.builds)} builds "
            f"({len(builds)} so far)"
        )
        # The next URL carries the full query string
        url = page.next_url
        params = None

    logger.info(
        f"Retrieved {len(builds)} builds for {org_slug} in {page_count} page(s)"
    )
    return builds
