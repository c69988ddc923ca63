"""
Exceptions raised while collecting and publishing Buildkite metrics.

Every error aborts the current collection cycle. The long-running collector
logs it and waits for the next tick; one-shot entry points exit non-zero.
"""


class CollectorError(Exception):
    """Base class for all collection cycle failures."""


class ConfigError(CollectorError):
    """Raised when the collector configuration is incomplete or invalid."""


class RetrievalError(CollectorError):
    """
    Raised when a page of builds cannot be retrieved or decoded.

    Attributes:
        url: The URL that was being requested
    """

    def __init__(self, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url


class FetchError(RetrievalError):
    """
    Raised when the Buildkite API answers with a non-success status.

    Attributes:
        url: The URL that was requested
        status_code: HTTP status code of the response
    """

    def __init__(self, url: str, status_code: int):
        super().__init__(url, f"Failed to request builds: HTTP {status_code}")
        self.status_code = status_code


class ContinuationParseError(CollectorError):
    """
    Raised when a Link header cannot be parsed.

    Attributes:
        header: The raw header value
    """

    def __init__(self, header: str, message: str = "Malformed Link header"):
        super().__init__(f"{message}: {header!r}")
        self.header = header


class SubmissionError(CollectorError):
    """
    Raised when the metrics sink rejects a chunk of data points.

    Attributes:
        chunk_index: Zero-based index of the rejected chunk, if known
    """

    def __init__(self, message: str, chunk_index: int | None = None):
        super().__init__(message)
        self.chunk_index = chunk_index
