# seo_analyzer/crawl.py
# --------------------------------------------------------------------------------------
# Link sampling + robots.txt / sitemap discovery.
# Each sampled URL is checked independently; a failure becomes an `error` on that
# slot and never cancels its siblings.
# --------------------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
import re
import urllib.robotparser as robotparser
from typing import List, Optional

import httpx

from . import config
from .errors import FetchError
from .fetcher import make_client, send
from .models import CrawlChecks, LinkCheckResult, LinkChecks, PageSnapshot, RobotsTxtInfo, SitemapEntry

logger = logging.getLogger(__name__)

_SITEMAP_DIRECTIVE = re.compile(r"^\s*sitemap\s*:\s*(\S.*?)\s*$", re.I)

# Servers that refuse HEAD get one GET instead.
HEAD_FALLBACK_STATUSES = (405, 501)
INDEX_SKIP_NOTE = "listed in robots; skipped index fetch"

# ======================================================================================
# Existence checks
# ======================================================================================

async def check_url(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = config.LINK_CHECK_TIMEOUT,
) -> LinkCheckResult:
    try:
        r = await send(client, "HEAD", url, timeout)
        if r.status_code in HEAD_FALLBACK_STATUSES:
            r = await send(client, "GET", url, timeout)
    except FetchError as e:
        return LinkCheckResult(url=url, error=str(e))
    return LinkCheckResult(url=url, status=r.status_code, final_url=str(r.url))


async def _check_all(client: httpx.AsyncClient, urls: List[str], timeout: float) -> List[LinkCheckResult]:
    """Check every URL concurrently; results come back in input order."""
    sem = asyncio.Semaphore(max(1, config.LINK_CHECK_CONCURRENCY))

    async def one(u: str) -> LinkCheckResult:
        async with sem:
            return await check_url(client, u, timeout)

    return list(await asyncio.gather(*(one(u) for u in urls)))

# ======================================================================================
# Link audit
# ======================================================================================

async def audit_links(
    snapshot: PageSnapshot,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> LinkChecks:
    internal = snapshot.internal_links[:config.LINK_SAMPLE_INTERNAL]
    external = snapshot.external_links[:config.LINK_SAMPLE_EXTERNAL]
    if client is None:
        async with make_client() as own:
            return await audit_links(snapshot, client=own)

    results = await _check_all(client, internal + external, config.LINK_CHECK_TIMEOUT)
    out = LinkChecks(internal=results[:len(internal)], external=results[len(internal):])
    failed = sum(1 for r in results if r.error)
    if failed:
        logger.info("link audit for %s: %d of %d samples failed", snapshot.url, failed, len(results))
    return out

# ======================================================================================
# robots.txt + sitemap discovery
# ======================================================================================

def discover_sitemaps(robots_txt: str) -> List[str]:
    seen = set()
    uniq: List[str] = []
    for line in robots_txt.splitlines():
        m = _SITEMAP_DIRECTIVE.match(line)
        if not m:
            continue
        sm = m.group(1)
        if sm not in seen:
            seen.add(sm)
            uniq.append(sm)
    return uniq


def is_blocked(robots_txt: str, target_url: str, user_agent: str = config.USER_AGENT) -> Optional[bool]:
    if not robots_txt.strip():
        return None
    rp = robotparser.RobotFileParser()
    rp.parse(robots_txt.splitlines())
    return not rp.can_fetch(user_agent, target_url)


async def audit_robots(
    snapshot: PageSnapshot,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> CrawlChecks:
    """
    - Fetch robots.txt (if the page URL has a host)
    - Determine if the scanned URL is blocked for our UA
    - Existence-check each declared sitemap; sitemap_index.xml is left for the
      sitemap locator, which fetches it anyway
    """
    robots_url = snapshot.robots_url
    if not robots_url:
        return CrawlChecks()
    if client is None:
        async with make_client() as own:
            return await audit_robots(snapshot, client=own)

    try:
        r = await send(client, "GET", robots_url, config.ROBOTS_TIMEOUT)
    except FetchError as e:
        logger.warning("robots.txt fetch failed for %s: %s", robots_url, e)
        return CrawlChecks(robots_txt=RobotsTxtInfo(url=robots_url, error=str(e)))

    robots_txt = r.text if r.status_code == 200 else ""
    info = RobotsTxtInfo(url=robots_url, status=r.status_code, length=len(r.content))

    sitemaps = discover_sitemaps(robots_txt)
    to_check = [sm for sm in sitemaps if not sm.lower().endswith("sitemap_index.xml")]
    checked = {c.url: c for c in await _check_all(client, to_check, config.ROBOTS_TIMEOUT)}

    entries: List[SitemapEntry] = []
    for sm in sitemaps:
        c = checked.get(sm)
        if c is None:
            entries.append(SitemapEntry(url=sm, note=INDEX_SKIP_NOTE))
        elif c.error:
            entries.append(SitemapEntry(url=sm, error=c.error))
        else:
            entries.append(SitemapEntry(url=sm, status=c.status))

    return CrawlChecks(
        robots_txt=info,
        sitemaps=entries,
        blocked_by_robots=is_blocked(robots_txt, snapshot.final_url or snapshot.url),
    )
