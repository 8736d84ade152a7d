"""Shared fixtures.

Snapshots are built from in-memory ``FetchResult`` objects so parser tests never
touch the network. Tests that exercise HTTP use ``respx`` directly.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

import pytest

from seo_analyzer.models import FetchResult, PageSnapshot
from seo_analyzer.snapshot import build


@pytest.fixture()
def make_fetch() -> Callable[..., FetchResult]:
    def _make(
        body: str,
        url: str = "https://example.com/",
        *,
        headers: Optional[Dict[str, str]] = None,
        status_code: int = 200,
        elapsed_ms: int = 100,
    ) -> FetchResult:
        return FetchResult(
            body=body,
            headers=headers or {},
            status_code=status_code,
            final_url=url,
            elapsed_ms=elapsed_ms,
        )

    return _make


@pytest.fixture()
def make_snapshot(make_fetch) -> Callable[..., PageSnapshot]:
    def _make(body: str, url: str = "https://example.com/", **kwargs) -> PageSnapshot:
        return build(url, make_fetch(body, url, **kwargs))

    return _make
