"""
Unit tests for bk_client.client module.

Tests Link header parsing, single page fetching and pagination.
"""

from datetime import UTC, datetime
from unittest.mock import Mock, patch

import pytest
import requests

from bk_client.client import (
    BuildsQuery,
    fetch_page,
    list_builds,
    parse_link_header,
)
from bk_common.exceptions import ContinuationParseError, FetchError, RetrievalError

API = "https://api.buildkite.com/v2"
FIRST_URL = f"{API}/organizations/acme/builds"


def make_response(payload, link=None, status_code=200):
    """Create a mock requests response."""
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.json.return_value = payload
    response.headers = {"Link": link} if link is not None else {}
    return response


class TestParseLinkHeader:
    """Test suite for parse_link_header function."""

    def test_next_and_last(self):
        """Test a typical Buildkite Link header."""
        header = (
            f'<{FIRST_URL}?page=2&per_page=100>; rel="next", '
            f'<{FIRST_URL}?page=5&per_page=100>; rel="last"'
        )
        links = parse_link_header(header)
        assert links["next"] == f"{FIRST_URL}?page=2&per_page=100"
        assert links["last"] == f"{FIRST_URL}?page=5&per_page=100"

    def test_last_page_has_no_next(self):
        """Test that a header without rel=next yields no next link."""
        header = f'<{FIRST_URL}?page=1>; rel="first", <{FIRST_URL}?page=4>; rel="prev"'
        assert "next" not in parse_link_header(header)

    def test_missing_or_blank_header(self):
        """Test that an absent header means no links."""
        assert parse_link_header(None) == {}
        assert parse_link_header("   ") == {}

    def test_unquoted_and_multiple_rels(self):
        """Test unquoted rel values and space separated relation types."""
        links = parse_link_header("<https://x/a>; rel=next, <https://x/b>; rel=\"prev first\"")
        assert links == {"next": "https://x/a", "prev": "https://x/b", "first": "https://x/b"}

    def test_extra_params(self):
        """Test that parameters other than rel are tolerated."""
        links = parse_link_header('<https://x/a>; title="page two"; rel="next"')
        assert links["next"] == "https://x/a"

    def test_semicolon_inside_url(self):
        """Test that a ';' inside the <url> target is part of the URL."""
        links = parse_link_header(
            '<https://api.example.com/v2/builds;v=2?page=2>; rel="next"'
        )
        assert links == {"next": "https://api.example.com/v2/builds;v=2?page=2"}

    def test_text_after_target_raises(self):
        """Test that parameters must follow the target after a ';'."""
        with pytest.raises(ContinuationParseError):
            parse_link_header('<https://x/a> rel="next"')

    def test_missing_angle_brackets_raises(self):
        """Test that an entry without <url> is rejected."""
        with pytest.raises(ContinuationParseError):
            parse_link_header('https://x/a; rel="next"')

    def test_bad_param_raises(self):
        """Test that a parameter without '=' is rejected."""
        with pytest.raises(ContinuationParseError):
            parse_link_header("<https://x/a>; next")


class TestBuildsQuery:
    """Test suite for BuildsQuery.to_params."""

    def test_defaults(self):
        """Test that an empty query only pages."""
        assert BuildsQuery().to_params() == {"per_page": 100, "page": 1}

    def test_all_filters(self):
        """Test formatting of every filter."""
        when = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        params = BuildsQuery(
            created_from=when,
            created_to=when,
            finished_from=when,
            state="running",
        ).to_params()
        assert params == {
            "per_page": 100,
            "page": 1,
            "created_from": "2024-01-15T10:30:00Z",
            "created_to": "2024-01-15T10:30:00Z",
            "finished_from": "2024-01-15T10:30:00Z",
            "state": "running",
        }


class TestFetchPage:
    """Test suite for fetch_page function."""

    @patch("bk_client.client.requests.get")
    def test_decodes_builds_and_next(self, mock_get, make_build_payload):
        """Test a successful page with a next link."""
        mock_get.return_value = make_response(
            [make_build_payload(), make_build_payload()],
            link=f'<{FIRST_URL}?page=2>; rel="next"',
        )

        page = fetch_page(FIRST_URL, "secret", params={"page": 1})

        assert len(page.builds) == 2
        assert page.next_url == f"{FIRST_URL}?page=2"
        args, kwargs = mock_get.call_args
        assert args[0] == FIRST_URL
        assert kwargs["headers"] == {"Authorization": "Bearer secret"}
        assert kwargs["params"] == {"page": 1}
        assert kwargs["timeout"] > 0

    @patch("bk_client.client.requests.get")
    def test_last_page(self, mock_get):
        """Test that a page without Link header is the last page."""
        mock_get.return_value = make_response([])
        page = fetch_page(FIRST_URL, "secret")
        assert page.builds == []
        assert page.next_url is None

    @patch("bk_client.client.requests.get")
    def test_http_error_raises_fetch_error(self, mock_get):
        """Test that non-success statuses raise FetchError with the URL."""
        mock_get.return_value = make_response({"message": "nope"}, status_code=401)

        with pytest.raises(FetchError) as exc_info:
            fetch_page(FIRST_URL, "bad-token")

        assert exc_info.value.url == FIRST_URL
        assert exc_info.value.status_code == 401

    @patch("bk_client.client.requests.get")
    def test_network_error_raises_retrieval_error(self, mock_get):
        """Test that transport errors are converted to RetrievalError."""
        mock_get.side_effect = requests.exceptions.ConnectionError("Connection failed")

        with pytest.raises(RetrievalError, match="Error requesting builds"):
            fetch_page(FIRST_URL, "secret")

    @patch("bk_client.client.requests.get")
    def test_invalid_json_raises_retrieval_error(self, mock_get):
        """Test that an undecodable body raises RetrievalError."""
        response = make_response(None)
        response.json.side_effect = ValueError("Expecting value")
        mock_get.return_value = response

        with pytest.raises(RetrievalError, match="Invalid JSON"):
            fetch_page(FIRST_URL, "secret")

    @patch("bk_client.client.requests.get")
    def test_non_list_body_raises_retrieval_error(self, mock_get):
        """Test that an object body is rejected."""
        mock_get.return_value = make_response({"builds": []})

        with pytest.raises(RetrievalError, match="Expected a list"):
            fetch_page(FIRST_URL, "secret")

    @patch("bk_client.client.requests.get")
    def test_malformed_build_raises_retrieval_error(self, mock_get):
        """Test that a build missing required fields is rejected."""
        mock_get.return_value = make_response([{"state": "running"}])

        with pytest.raises(RetrievalError, match="Malformed build"):
            fetch_page(FIRST_URL, "secret")

    @patch("bk_client.client.requests.get")
    def test_non_string_agent_rule_raises_retrieval_error(self, mock_get):
        """Test that a job with a null agent rule fails at decode time."""
        build = {
            "id": "b1",
            "state": "running",
            "pipeline": {"name": "app"},
            "jobs": [{"id": "j1", "state": "running", "agent_query_rules": [None]}],
        }
        mock_get.return_value = make_response([build])

        with pytest.raises(RetrievalError, match="Malformed build"):
            fetch_page(FIRST_URL, "secret")

    @patch("bk_client.client.requests.get")
    def test_malformed_link_raises(self, mock_get):
        """Test that a malformed Link header aborts the fetch."""
        mock_get.return_value = make_response([], link="garbage")

        with pytest.raises(ContinuationParseError):
            fetch_page(FIRST_URL, "secret")


class TestListBuilds:
    """Test suite for list_builds pagination."""

    @patch("bk_client.client.requests.get")
    def test_follows_three_pages_in_order(self, mock_get, make_build_payload):
        """Test that all linked pages are concatenated in page order."""
        pages = [
            [make_build_payload(pipeline="p1"), make_build_payload(pipeline="p2")],
            [make_build_payload(pipeline="p3")],
            [make_build_payload(pipeline="p4")],
        ]
        mock_get.side_effect = [
            make_response(pages[0], link=f'<{FIRST_URL}?page=2>; rel="next"'),
            make_response(
                pages[1],
                link=f'<{FIRST_URL}?page=1>; rel="prev", <{FIRST_URL}?page=3>; rel="next"',
            ),
            make_response(pages[2], link=f'<{FIRST_URL}?page=2>; rel="prev"'),
        ]

        builds = list_builds("acme", "secret", BuildsQuery(state="running"), api_base_url=API)

        assert [b.pipeline.name for b in builds] == ["p1", "p2", "p3", "p4"]
        assert mock_get.call_count == 3

        urls = [c.args[0] for c in mock_get.call_args_list]
        assert urls == [FIRST_URL, f"{FIRST_URL}?page=2", f"{FIRST_URL}?page=3"]

        # Only the first request carries query params
        params = [c.kwargs["params"] for c in mock_get.call_args_list]
        assert params[0] == {"per_page": 100, "page": 1, "state": "running"}
        assert params[1] is None
        assert params[2] is None

    @patch("bk_client.client.requests.get")
    def test_single_page(self, mock_get, make_build_payload):
        """Test that a response without next link returns one page."""
        mock_get.return_value = make_response(
            [make_build_payload(), make_build_payload()]
        )

        builds = list_builds("acme", "secret")

        assert len(builds) == 2
        mock_get.assert_called_once()

    @patch("bk_client.client.requests.get")
    def test_failure_mid_traversal_aborts(self, mock_get, make_build_payload):
        """Test that a failing page discards earlier pages and raises."""
        mock_get.side_effect = [
            make_response(
                [make_build_payload()], link=f'<{FIRST_URL}?page=2>; rel="next"'
            ),
            make_response([], status_code=502),
        ]

        with pytest.raises(FetchError) as exc_info:
            list_builds("acme", "secret", api_base_url=API)

        assert exc_info.value.url == f"{FIRST_URL}?page=2"

    @patch("bk_client.client.requests.get")
    def test_base_url_trailing_slash(self, mock_get):
        """Test that a trailing slash on the base URL is ignored."""
        mock_get.return_value = make_response([])

        list_builds("acme", "secret", api_base_url=API + "/")

        assert mock_get.call_args.args[0] == FIRST_URL
