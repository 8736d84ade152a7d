# seo_analyzer/pagespeed.py
# --------------------------------------------------------------------------------------
# PageSpeed Insights (optional). Without an API key the collaborator is simply not
# configured; the orchestrator records that as a disabled section.
# --------------------------------------------------------------------------------------

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from . import config
from .errors import FetchError, NotConfigured
from .fetcher import make_client, send
from .models import PageSpeedResult, PageSpeedStrategy

PSI_ENDPOINT = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
STRATEGIES = ("mobile", "desktop")
METRIC_KEYS = (
    "first-contentful-paint",
    "speed-index",
    "largest-contentful-paint",
    "total-blocking-time",
    "cumulative-layout-shift",
    "server-response-time",
)


def _obj(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _parse_strategy(data: Any) -> PageSpeedStrategy:
    lighthouse = _obj(_obj(data).get("lighthouseResult"))
    if not lighthouse:
        return PageSpeedStrategy(error="invalid PSI response: no lighthouseResult")
    score = _obj(_obj(lighthouse.get("categories")).get("performance")).get("score")
    audits = _obj(lighthouse.get("audits"))
    display = {k: _obj(audits.get(k)).get("displayValue") for k in METRIC_KEYS}
    return PageSpeedStrategy(
        score=round(score * 100) if isinstance(score, (int, float)) and not isinstance(score, bool) else None,
        metrics={k: v if isinstance(v, str) else None for k, v in display.items()},
    )


async def _run_strategy(client: httpx.AsyncClient, url: str, strategy: str, api_key: str) -> PageSpeedStrategy:
    query = httpx.QueryParams({"url": url, "strategy": strategy, "key": api_key})
    try:
        r = await send(client, "GET", f"{PSI_ENDPOINT}?{query}", config.PSI_TIMEOUT)
    except FetchError as e:
        return PageSpeedStrategy(error=str(e))
    if r.status_code != 200:
        return PageSpeedStrategy(error=f"HTTP {r.status_code}")
    try:
        return _parse_strategy(r.json())
    except ValueError as e:
        return PageSpeedStrategy(error=f"invalid PSI response: {e}")


async def fetch_pagespeed(url: str, api_key: Optional[str] = None) -> PageSpeedResult:
    """Mobile + desktop performance scores. Raises NotConfigured without an API key."""
    api_key = api_key or config.PAGESPEED_API_KEY
    if not api_key:
        raise NotConfigured("PAGESPEED_API_KEY not set")
    async with make_client(config.PSI_TIMEOUT) as client:
        results = {s: await _run_strategy(client, url, s, api_key) for s in STRATEGIES}
    return PageSpeedResult(enabled=True, **results)
