"""Single-page SEO analyzer: fetch, extract, crawl-audit and diff."""

from .compare import compare
from .errors import FetchError, FetchTimeout, HttpError, NetworkError, NotConfigured
from .fetcher import fetch
from .orchestrator import analyze, analyze_stream
from .snapshot import build
from .structured import extract, summarize_types, validate_json_ld

__all__ = [
    "analyze",
    "analyze_stream",
    "build",
    "compare",
    "extract",
    "fetch",
    "summarize_types",
    "validate_json_ld",
    "FetchError",
    "FetchTimeout",
    "HttpError",
    "NetworkError",
    "NotConfigured",
]
