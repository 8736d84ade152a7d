# seo_analyzer/orchestrator.py
# --------------------------------------------------------------------------------------
# One analysis run:
#
#   fetch -> parse -> (links || robots) -> sitemap -> [amp] -> [pagespeed] -> [rendered]
#
# A progress event is yielded around each stage. Only a failure to fetch the primary
# URL ends the run early; every later stage degrades to a partial or skipped section
# of the final AnalysisResult. analyze() returns that result; analyze_stream() yields
# the events. Closing the stream cancels in-flight audit tasks.
# --------------------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

import httpx

from . import config
from .compare import compare_summaries, rendered_diff, summarize
from .crawl import audit_links, audit_robots
from .errors import FetchError, NotConfigured
from .fetcher import fetch, make_client
from .models import (
    AmpCompare,
    AnalysisEvent,
    AnalysisResult,
    CrawlChecks,
    ErrorEvent,
    FetchResult,
    LinkChecks,
    PageSnapshot,
    PageSpeedResult,
    Performance,
    RenderedDiff,
    ResultEvent,
    SitemapMembership,
    StageEvent,
)
from .pagespeed import fetch_pagespeed
from .render import render
from .sitemaps import locate_membership, normalize_url
from .snapshot import build

logger = logging.getLogger(__name__)

Renderer = Callable[[str, int], Awaitable[Optional[str]]]
PerformanceScorer = Callable[[str], Awaitable[PageSpeedResult]]


def amp_counterpart(snapshot: PageSnapshot) -> Optional[Tuple[str, bool]]:
    """
    (other_url, page_is_amp) for the page to compare against, or None.

    A declared amphtml link wins; otherwise an AMP page is paired with a
    canonical that points somewhere else.
    """
    here = normalize_url(snapshot.url)
    if snapshot.amp_url and normalize_url(snapshot.amp_url) != here:
        return snapshot.amp_url, False
    if snapshot.is_amp and snapshot.canonical_url and normalize_url(snapshot.canonical_url) != here:
        return snapshot.canonical_url, True
    return None


class AnalysisRun:
    def __init__(
        self,
        url: str,
        *,
        do_rendered_check: bool = False,
        do_pagespeed: bool = True,
        renderer: Optional[Renderer] = None,
        performance: Optional[PerformanceScorer] = None,
    ):
        self.url = url
        self.do_rendered_check = do_rendered_check
        self.do_pagespeed = do_pagespeed
        self.renderer = renderer or render
        self.performance = performance or fetch_pagespeed
        self.failure: Optional[FetchError] = None

    async def events(self) -> AsyncIterator[AnalysisEvent]:
        async with make_client() as client:
            stages = self._run(client)
            try:
                async for event in stages:
                    yield event
            finally:
                await stages.aclose()

    # ----------------------------------------------------------------------------------
    # Stages
    # ----------------------------------------------------------------------------------

    async def _run(self, client: httpx.AsyncClient) -> AsyncIterator[AnalysisEvent]:
        yield StageEvent(stage="fetch", status="start")
        try:
            fetched = await fetch(self.url, config.HTTP_TIMEOUT_MAIN, client=client)
        except FetchError as e:
            self.failure = e
            logger.warning("analysis of %s failed: %s", self.url, e)
            yield StageEvent(stage="fetch", status="error", detail=str(e))
            yield ErrorEvent(error=str(e))
            return
        yield StageEvent(stage="fetch", status="done", detail=str(fetched.status_code))

        yield StageEvent(stage="parse", status="start")
        page_url = fetched.final_url or self.url
        snapshot = build(page_url, fetched)
        yield StageEvent(stage="parse", status="done", detail=snapshot.title)

        # links || robots; done events in completion order
        yield StageEvent(stage="links", status="start")
        yield StageEvent(stage="robots", status="start")
        tasks: Dict[asyncio.Task, str] = {
            asyncio.create_task(audit_links(snapshot, client=client)): "links",
            asyncio.create_task(audit_robots(snapshot, client=client)): "robots",
        }
        audits: Dict[str, object] = {}
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    stage = tasks[task]
                    exc = task.exception()
                    if exc is not None:
                        logger.warning("%s audit failed for %s: %r", stage, snapshot.url, exc)
                        yield StageEvent(stage=stage, status="error", detail=str(exc))
                        continue
                    audits[stage] = task.result()
                    yield StageEvent(stage=stage, status="done")
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        link_checks = audits.get("links")
        crawl_checks = audits.get("robots")

        candidates = [s.url for s in crawl_checks.sitemaps] if isinstance(crawl_checks, CrawlChecks) else []
        membership: Optional[SitemapMembership]
        if candidates:
            yield StageEvent(stage="sitemap", status="start")
            try:
                membership = await locate_membership(page_url, candidates, client=client)
            except Exception as e:
                membership = None
                logger.warning("sitemap lookup failed for %s: %r", page_url, e)
                yield StageEvent(stage="sitemap", status="error", detail=str(e))
            else:
                yield StageEvent(stage="sitemap", status="done", detail=f"found={membership.found}")
        else:
            membership = SitemapMembership(found=False, matches=[], checked_count=0, checked=[])
            yield StageEvent(stage="sitemap", status="skipped")

        amp_compare: Optional[AmpCompare] = None
        amp_error: Optional[str] = None
        pair = amp_counterpart(snapshot)
        if pair is None:
            yield StageEvent(stage="amp", status="skipped")
        else:
            yield StageEvent(stage="amp", status="start")
            other_url, page_is_amp = pair
            try:
                other_fetch = await fetch(other_url, config.HTTP_TIMEOUT_MAIN, client=client)
            except FetchError as e:
                amp_error = str(e)
                logger.warning("AMP counterpart %s unavailable: %s", other_url, e)
                yield StageEvent(stage="amp", status="error", detail=amp_error)
            else:
                other = summarize(build(other_fetch.final_url or other_url, other_fetch))
                this = summarize(snapshot)
                non_amp, amp = (other, this) if page_is_amp else (this, other)
                amp_compare = AmpCompare(non_amp=non_amp, amp=amp, report=compare_summaries(non_amp, amp))
                yield StageEvent(stage="amp", status="done", detail=f"changes={amp_compare.report.change_count}")

        if not self.do_pagespeed:
            pagespeed = PageSpeedResult(enabled=False, skipped=True)
            yield StageEvent(stage="pagespeed", status="skipped")
        else:
            yield StageEvent(stage="pagespeed", status="start")
            try:
                pagespeed = await self.performance(page_url)
            except NotConfigured as e:
                pagespeed = PageSpeedResult(enabled=False, error=str(e))
                yield StageEvent(stage="pagespeed", status="skipped", detail=str(e))
            except Exception as e:
                logger.warning("pagespeed failed for %s: %r", page_url, e)
                pagespeed = PageSpeedResult(enabled=False, error=str(e) or e.__class__.__name__)
                yield StageEvent(stage="pagespeed", status="error", detail=pagespeed.error)
            else:
                yield StageEvent(stage="pagespeed", status="done")

        if not self.do_rendered_check:
            rendered = RenderedDiff(rendered=False, skipped=True)
            yield StageEvent(stage="rendered", status="skipped")
        else:
            yield StageEvent(stage="rendered", status="start")
            rendered = await self._rendered(page_url, fetched, snapshot)
            yield StageEvent(
                stage="rendered",
                status="done" if rendered.rendered else "skipped",
                detail=rendered.error,
            )

        result = AnalysisResult(
            snapshot=snapshot,
            performance=Performance(
                load_time_ms=fetched.elapsed_ms,
                page_size_bytes=snapshot.content_length,
                http_version=fetched.http_version,
                redirects=fetched.redirects,
                final_url=page_url,
                is_https=urlparse(page_url).scheme.lower() == "https",
            ),
            link_checks=link_checks if isinstance(link_checks, LinkChecks) else None,
            crawl_checks=crawl_checks if isinstance(crawl_checks, CrawlChecks) else None,
            sitemap_membership=membership,
            amp_compare=amp_compare,
            amp_compare_error=amp_error,
            pagespeed=pagespeed,
            rendered_diff=rendered,
        )
        yield ResultEvent(result=result)

    async def _rendered(self, page_url: str, fetched: FetchResult, snapshot: PageSnapshot) -> RenderedDiff:
        started = time.perf_counter()
        try:
            html = await self.renderer(page_url, config.RENDER_TIMEOUT_MS)
        except Exception as e:
            logger.warning("renderer raised for %s: %r", page_url, e)
            return RenderedDiff(rendered=False, error=f"render failed: {e}")
        if not html:
            return RenderedDiff(rendered=False, error="render skipped/failed")

        rendered_fetch = FetchResult(
            body=html,
            headers={k: v for k, v in fetched.headers.items() if k != "content-length"},
            status_code=fetched.status_code,
            final_url=page_url,
            elapsed_ms=int((time.perf_counter() - started) * 1000),
        )
        return rendered_diff(snapshot, build(page_url, rendered_fetch), html)

# ======================================================================================
# Public entrypoints
# ======================================================================================

def analyze_stream(url: str, **options) -> AsyncIterator[AnalysisEvent]:
    """Stage events, then exactly one ResultEvent or ErrorEvent."""
    return AnalysisRun(url, **options).events()


async def analyze(url: str, **options) -> AnalysisResult:
    """
    Run every stage and return the assembled result.
    Raises the primary FetchError if the page itself cannot be fetched.
    """
    run = AnalysisRun(url, **options)
    result: Optional[AnalysisResult] = None
    async for event in run.events():
        if isinstance(event, ResultEvent):
            result = event.result
    if result is not None:
        return result
    if run.failure is not None:
        raise run.failure
    raise RuntimeError(f"analysis of {url} ended without a result")
