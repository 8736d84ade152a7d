"""Tests for the analysis orchestrator (``analyze`` / ``analyze_stream``).

Mocking strategy:
- ``respx`` serves the page, its robots.txt, sitemap, AMP counterpart and the
  sampled links. A trailing catch-all route answers 404 so that no request can
  escape the mock.
- The render and PageSpeed collaborators are replaced by small async fakes
  passed as ``renderer=`` / ``performance=``; Playwright and the PSI API are
  never touched.
"""

from __future__ import annotations

from typing import Dict, List, Optional

import httpx
import pytest
import respx

from seo_analyzer.errors import NetworkError, NotConfigured
from seo_analyzer.models import (
    ErrorEvent,
    PageSpeedResult,
    PageSpeedStrategy,
    ResultEvent,
    StageEvent,
)
from seo_analyzer.orchestrator import amp_counterpart, analyze, analyze_stream


# ---------------------------------------------------------------------------
# Fixtures / constants
# ---------------------------------------------------------------------------

_URL = "https://example.com/news/story"
_AMP_URL = "https://example.com/news/story/amp"

_PAGE = """\
<html lang="en"><head>
  <title>Big story breaks today</title>
  <link rel="canonical" href="https://example.com/news/story">
  <link rel="amphtml" href="/news/story/amp">
</head><body>
  <h1>Big story</h1>
  <a href="/about">About</a>
  <a href="https://other.org/">Elsewhere</a>
</body></html>
"""

_AMP_PAGE = """\
<html amp lang="en"><head>
  <title>Big story (AMP)</title>
  <link rel="canonical" href="https://example.com/news/story">
  <style amp-boilerplate>body{}</style>
</head><body><h1>Big story</h1></body></html>
"""

_ROBOTS = "User-agent: *\nAllow: /\nSitemap: https://example.com/sitemap.xml\n"

_SITEMAP = (
    '<?xml version="1.0"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
    "<url><loc>https://example.com/news/story</loc></url></urlset>"
)

_RENDERED = _PAGE.replace("<h1>Big story</h1>", "<h1>Big story</h1><h1>Live updates</h1>")


def _mock_site(
    router: respx.MockRouter,
    *,
    robots_error: Optional[type] = None,
    amp_error: Optional[type] = None,
) -> Dict[str, respx.Route]:
    """Route the whole site; ``*_error`` makes that resource raise instead."""
    robots = router.get("https://example.com/robots.txt")
    if robots_error:
        robots.mock(side_effect=robots_error)
    else:
        robots.mock(return_value=httpx.Response(200, text=_ROBOTS))
    amp = router.get(_AMP_URL)
    if amp_error:
        amp.mock(side_effect=amp_error)
    else:
        amp.mock(return_value=httpx.Response(200, text=_AMP_PAGE))
    return {
        "page": router.get(_URL).mock(return_value=httpx.Response(200, text=_PAGE)),
        "about": router.head("https://example.com/about").mock(return_value=httpx.Response(200)),
        "other": router.head("https://other.org/").mock(return_value=httpx.Response(404)),
        "robots": robots,
        "sitemap_head": router.head("https://example.com/sitemap.xml").mock(return_value=httpx.Response(200)),
        "sitemap": router.get("https://example.com/sitemap.xml").mock(
            return_value=httpx.Response(200, text=_SITEMAP)
        ),
        "amp": amp,
    }


def _catch_all(router: respx.MockRouter) -> None:
    router.route().mock(return_value=httpx.Response(404))


async def _fake_performance(url: str) -> PageSpeedResult:
    return PageSpeedResult(enabled=True, mobile=PageSpeedStrategy(score=91), desktop=PageSpeedStrategy(score=99))


async def _fake_renderer(url: str, timeout_ms: int) -> Optional[str]:
    return _RENDERED


async def _collect(url: str, **options) -> List:
    return [event async for event in analyze_stream(url, **options)]


# ---------------------------------------------------------------------------
# Full run
# ---------------------------------------------------------------------------

class TestAnalyzeFullRun:
    async def test_every_section_populated(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            _mock_site(router)
            _catch_all(router)
            result = await analyze(
                _URL,
                do_rendered_check=True,
                renderer=_fake_renderer,
                performance=_fake_performance,
            )

        assert result.snapshot.title == "Big story breaks today"
        assert result.performance.is_https is True
        assert result.performance.final_url == _URL

        assert [(r.url, r.status) for r in result.link_checks.internal] == [("https://example.com/about", 200)]
        assert [(r.url, r.status) for r in result.link_checks.external] == [("https://other.org/", 404)]

        assert result.crawl_checks.robots_txt.status == 200
        assert result.crawl_checks.blocked_by_robots is False
        assert [s.url for s in result.crawl_checks.sitemaps] == ["https://example.com/sitemap.xml"]

        assert result.sitemap_membership.found is True
        assert result.sitemap_membership.matches == ["https://example.com/sitemap.xml"]

        assert result.amp_compare is not None
        assert result.amp_compare.non_amp.url == _URL
        assert result.amp_compare.amp.url == _AMP_URL
        changed = {r.label for r in result.amp_compare.report.rows if r.changed}
        assert {"URL", "Title"} <= changed

        assert result.pagespeed.enabled is True
        assert result.pagespeed.mobile.score == 91

        assert result.rendered_diff.rendered is True
        assert result.rendered_diff.h1_count_changed is True
        assert result.rendered_diff.title_changed is False

    async def test_optional_stages_off(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            _mock_site(router)
            _catch_all(router)
            result = await analyze(_URL, do_pagespeed=False)

        assert result.pagespeed.enabled is False
        assert result.pagespeed.skipped is True
        assert result.rendered_diff.rendered is False
        assert result.rendered_diff.skipped is True

    async def test_result_serializes(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            _mock_site(router)
            _catch_all(router)
            result = await analyze(_URL, do_pagespeed=False)

        data = result.model_dump(mode="json")
        assert data["snapshot"]["url"] == _URL
        assert data["sitemap_membership"]["found"] is True


# ---------------------------------------------------------------------------
# Primary fetch failure
# ---------------------------------------------------------------------------

class TestPrimaryFetchFailure:
    async def test_analyze_raises(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.get(_URL).mock(side_effect=httpx.ConnectError)
            robots = router.get("https://example.com/robots.txt").mock(return_value=httpx.Response(200))
            with pytest.raises(NetworkError):
                await analyze(_URL, do_pagespeed=False)

        assert not robots.called

    async def test_stream_ends_with_error_event(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.get(_URL).mock(side_effect=httpx.ConnectError)
            _catch_all(router)
            events = await _collect(_URL, do_pagespeed=False)

        assert events[0] == StageEvent(stage="fetch", status="start")
        assert events[1].stage == "fetch" and events[1].status == "error"
        assert isinstance(events[-1], ErrorEvent)
        assert not any(isinstance(e, ResultEvent) for e in events)


# ---------------------------------------------------------------------------
# Event stream
# ---------------------------------------------------------------------------

class TestStream:
    async def test_stage_ordering(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            _mock_site(router)
            _catch_all(router)
            events = await _collect(_URL, performance=_fake_performance)

        stages = [(e.stage, e.status) for e in events if isinstance(e, StageEvent)]
        assert stages[:4] == [("fetch", "start"), ("fetch", "done"), ("parse", "start"), ("parse", "done")]
        for stage in ("links", "robots"):
            assert stages.index((stage, "start")) < stages.index((stage, "done"))
        # both audits are started before either finishes
        assert stages.index(("robots", "start")) < min(
            stages.index(("links", "done")), stages.index(("robots", "done"))
        )
        assert stages.index(("robots", "done")) < stages.index(("sitemap", "start"))
        assert ("rendered", "skipped") in stages

        assert isinstance(events[-1], ResultEvent)
        assert sum(isinstance(e, ResultEvent) for e in events) == 1

    async def test_early_close_stops_requests(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            routes = _mock_site(router)
            _catch_all(router)
            stream = analyze_stream(_URL, do_pagespeed=False)
            async for event in stream:
                if isinstance(event, StageEvent) and event.stage == "parse" and event.status == "done":
                    break
            await stream.aclose()

        assert routes["page"].called
        assert not routes["robots"].called
        assert not routes["about"].called


# ---------------------------------------------------------------------------
# Degradation
# ---------------------------------------------------------------------------

class TestDegradation:
    async def test_robots_failure_is_recorded(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            _mock_site(router, robots_error=httpx.ConnectError)
            _catch_all(router)
            result = await analyze(_URL, do_pagespeed=False)

        assert result.crawl_checks.robots_txt.error
        assert result.crawl_checks.sitemaps == []
        assert result.sitemap_membership.found is False
        assert result.sitemap_membership.checked_count == 0

    async def test_amp_counterpart_failure(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            _mock_site(router, amp_error=httpx.ConnectError)
            _catch_all(router)
            result = await analyze(_URL, do_pagespeed=False)

        assert result.amp_compare is None
        assert result.amp_compare_error

    async def test_pagespeed_not_configured(self) -> None:
        async def unconfigured(url: str) -> PageSpeedResult:
            raise NotConfigured("PAGESPEED_API_KEY not set")

        with respx.mock(assert_all_called=False) as router:
            _mock_site(router)
            _catch_all(router)
            result = await analyze(_URL, performance=unconfigured)

        assert result.pagespeed.enabled is False
        assert result.pagespeed.error == "PAGESPEED_API_KEY not set"

    async def test_pagespeed_unexpected_error(self) -> None:
        async def flaky(url: str) -> PageSpeedResult:
            raise httpx.ConnectError("psi down")

        with respx.mock(assert_all_called=False) as router:
            _mock_site(router)
            _catch_all(router)
            events = await _collect(_URL, performance=flaky)

        stages = [(e.stage, e.status) for e in events if isinstance(e, StageEvent)]
        assert ("pagespeed", "error") in stages
        assert isinstance(events[-1], ResultEvent)
        assert events[-1].result.pagespeed.enabled is False
        assert "psi down" in events[-1].result.pagespeed.error

    async def test_sitemap_lookup_failure(self, monkeypatch) -> None:
        async def broken(page_url, candidates, client=None):
            raise ValueError("Invalid IPv6 URL")

        monkeypatch.setattr("seo_analyzer.orchestrator.locate_membership", broken)
        with respx.mock(assert_all_called=False) as router:
            _mock_site(router)
            _catch_all(router)
            events = await _collect(_URL, do_pagespeed=False)

        stages = [(e.stage, e.status) for e in events if isinstance(e, StageEvent)]
        assert ("sitemap", "error") in stages
        assert isinstance(events[-1], ResultEvent)
        result = events[-1].result
        assert result.sitemap_membership is None
        assert result.crawl_checks.robots_txt.status == 200

    async def test_renderer_returns_nothing(self) -> None:
        async def no_browser(url: str, timeout_ms: int) -> Optional[str]:
            return None

        with respx.mock(assert_all_called=False) as router:
            _mock_site(router)
            _catch_all(router)
            result = await analyze(_URL, do_pagespeed=False, do_rendered_check=True, renderer=no_browser)

        assert result.rendered_diff.rendered is False
        assert result.rendered_diff.error

    async def test_renderer_raises(self) -> None:
        async def broken(url: str, timeout_ms: int) -> Optional[str]:
            raise RuntimeError("browser crashed")

        with respx.mock(assert_all_called=False) as router:
            _mock_site(router)
            _catch_all(router)
            result = await analyze(_URL, do_pagespeed=False, do_rendered_check=True, renderer=broken)

        assert result.rendered_diff.rendered is False
        assert "browser crashed" in result.rendered_diff.error

    async def test_non_2xx_page_is_still_analyzed(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.get(_URL).mock(return_value=httpx.Response(410, text="<html><title>Gone</title></html>"))
            _catch_all(router)
            result = await analyze(_URL, do_pagespeed=False)

        assert result.snapshot.status_code == 410
        assert result.snapshot.title == "Gone"
        assert result.amp_compare is None


# ---------------------------------------------------------------------------
# AMP pairing
# ---------------------------------------------------------------------------

class TestAmpCounterpart:
    def test_page_declares_amp_version(self, make_snapshot) -> None:
        snap = make_snapshot(_PAGE, _URL)
        assert amp_counterpart(snap) == (_AMP_URL, False)

    def test_amp_page_points_to_canonical(self, make_snapshot) -> None:
        snap = make_snapshot(_AMP_PAGE, _AMP_URL)
        assert amp_counterpart(snap) == (_URL, True)

    def test_self_canonical_amp_page_has_no_pair(self, make_snapshot) -> None:
        html = '<html amp><head><link rel="canonical" href="/s/"><style amp-boilerplate></style></head></html>'
        assert amp_counterpart(make_snapshot(html, "https://example.com/s")) is None

    def test_plain_page_has_no_pair(self, make_snapshot) -> None:
        assert amp_counterpart(make_snapshot("<html></html>", _URL)) is None
