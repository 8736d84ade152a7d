"""Error taxonomy for the analyzer.

Only a failure to fetch the primary page escapes an analysis run; every other
error is caught where it happens and recorded on the result.
"""

from __future__ import annotations

from typing import Optional


class SeoAnalyzerError(Exception):
    """Base class for all analyzer errors."""


class FetchError(SeoAnalyzerError):
    """A single HTTP request could not produce a usable response."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url


class NetworkError(FetchError):
    """Connection, DNS, TLS or URL-level failure."""


class FetchTimeout(FetchError, TimeoutError):
    """The request exceeded its time budget."""


class HttpError(FetchError):
    """The server answered, but with a status the caller cannot use."""

    def __init__(self, url: str, status_code: int, message: Optional[str] = None):
        super().__init__(url, message or f"HTTP {status_code}")
        self.status_code = status_code


class StructuredDataParseError(SeoAnalyzerError):
    """A structured-data block could not be parsed even leniently."""


class NotConfigured(SeoAnalyzerError):
    """An optional collaborator is unavailable (e.g. missing API key)."""
