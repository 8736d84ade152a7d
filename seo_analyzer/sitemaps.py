# seo_analyzer/sitemaps.py
# --------------------------------------------------------------------------------------
# Which declared sitemap(s) list the target URL?
#
# Two bounded phases: top-level candidates first, then at most one level of children
# collected from any <sitemapindex> seen in phase one. Children that are themselves
# indexes are not expanded further.
# --------------------------------------------------------------------------------------

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx
from bs4 import BeautifulSoup

from . import config
from .errors import FetchError
from .fetcher import fetch_text, make_client
from .models import SitemapMembership

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 10
MAX_TOP_LEVEL_FETCHES = 20
MAX_CHILDREN_PER_INDEX = 25
MAX_CHILD_FETCHES = 10
MAX_CHECKED = MAX_TOP_LEVEL_FETCHES + MAX_CHILD_FETCHES
MAX_MATCHES = 5


def normalize_url(u: str) -> str:
    """Lower-case scheme/host and strip trailing slashes from the path."""
    try:
        p = urlsplit(u.strip())
    except ValueError:
        return u
    return urlunsplit((p.scheme.lower(), p.netloc.lower(), p.path.rstrip("/"), p.query, p.fragment))


def parse_sitemap(xml_text: str) -> Tuple[bool, List[str]]:
    """Return (is_index, locs). Tolerates broken XML; garbage yields no locs."""
    soup = BeautifulSoup(xml_text or "", "xml")
    is_index = soup.find("sitemapindex") is not None
    entries = soup.find_all("sitemap" if is_index else "url")
    locs = []
    for entry in entries:
        loc = entry.find("loc")
        value = loc.get_text(strip=True) if loc is not None else ""
        if value:
            locs.append(value)
    return is_index, locs


def _uniq(urls: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for u in urls:
        if u and u not in seen:
            seen.add(u)
            out.append(u)
    return out


async def _load(client: httpx.AsyncClient, url: str) -> Optional[Tuple[bool, List[str]]]:
    try:
        return parse_sitemap(await fetch_text(client, url, config.SITEMAP_TIMEOUT))
    except FetchError as e:
        logger.debug("sitemap %s unavailable: %s", url, e)
        return None


def _lists_target(sitemap_url: str, locs: List[str], target: str) -> bool:
    for loc in locs:
        try:
            if normalize_url(urljoin(sitemap_url, loc)) == target:
                return True
        except ValueError:
            # malformed <loc>, e.g. an unterminated IPv6 host
            continue
    return False


async def locate_membership(
    target_url: str,
    candidate_sitemap_urls: List[str],
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> SitemapMembership:
    if client is None:
        async with make_client() as own:
            return await locate_membership(target_url, candidate_sitemap_urls, client=own)

    target = normalize_url(target_url)
    queue = deque(_uniq(candidate_sitemap_urls or [])[:MAX_CANDIDATES])
    checked: List[str] = []
    matches: List[str] = []
    children: List[str] = []

    while queue and len(checked) < MAX_TOP_LEVEL_FETCHES and len(matches) < MAX_MATCHES:
        u = queue.popleft()
        checked.append(u)
        doc = await _load(client, u)
        if doc is None:
            continue
        is_index, locs = doc
        if is_index:
            for loc in locs[:MAX_CHILDREN_PER_INDEX]:
                if loc not in children:
                    children.append(loc)
            continue
        if _lists_target(u, locs, target):
            matches.append(u)

    for child in children[:MAX_CHILD_FETCHES]:
        if len(checked) >= MAX_CHECKED or len(matches) >= MAX_MATCHES:
            break
        if child in checked:
            continue
        checked.append(child)
        doc = await _load(client, child)
        if doc is None:
            continue
        is_index, locs = doc
        if not is_index and _lists_target(child, locs, target):
            matches.append(child)

    return SitemapMembership(
        found=bool(matches),
        matches=matches,
        checked_count=len(checked),
        checked=checked,
    )
