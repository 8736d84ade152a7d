# seo_analyzer/fetcher.py
# --------------------------------------------------------------------------------------
# Single-attempt HTTP access. Every network call in the package goes through send(),
# which maps httpx failures onto the errors in seo_analyzer.errors. Nothing here
# retries: SEO signals must reflect what the target server does on one attempt.
# --------------------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import httpx

from . import config
from .errors import FetchTimeout, HttpError, NetworkError
from .models import FetchResult

logger = logging.getLogger(__name__)


def make_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        follow_redirects=True,
        headers=dict(config.DEFAULT_HEADERS),
        timeout=timeout if timeout is not None else config.HTTP_TIMEOUT_MAIN,
        verify=config.VERIFY_SSL,
        trust_env=True,
    )


async def send(client: httpx.AsyncClient, method: str, url: str, timeout: float) -> httpx.Response:
    """
    Issue one request and return the response whatever its status.
    *timeout* bounds the whole call, body included, not just each read.
    Raises FetchTimeout or NetworkError.
    """
    try:
        return await asyncio.wait_for(client.request(method, url, timeout=timeout), timeout)
    except asyncio.TimeoutError as e:
        raise FetchTimeout(url, f"timed out after {timeout:g}s") from e
    except httpx.TimeoutException as e:
        raise FetchTimeout(url, f"timed out after {timeout:g}s: {e}") from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise NetworkError(url, str(e) or e.__class__.__name__) from e


async def fetch(
    url: str,
    timeout: float = config.HTTP_TIMEOUT_MAIN,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> FetchResult:
    """
    Timed, redirect-following GET. Non-2xx responses are returned, not raised:
    the status code is itself an SEO signal.
    """
    if client is None:
        async with make_client(timeout) as own:
            return await fetch(url, timeout, client=own)

    start = time.perf_counter()
    resp = await send(client, "GET", url, timeout)
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    result = FetchResult(
        body=resp.text or "",
        headers={k.lower(): v for k, v in resp.headers.items()},
        status_code=resp.status_code,
        final_url=str(resp.url),
        elapsed_ms=elapsed_ms,
        redirects=len(resp.history),
        http_version=resp.http_version or None,
    )
    logger.debug("GET %s -> %s in %sms", url, result.status_code, elapsed_ms)
    return result


async def fetch_text(client: httpx.AsyncClient, url: str, timeout: float) -> str:
    """GET that only accepts 2xx responses. Raises HttpError otherwise."""
    resp = await send(client, "GET", url, timeout)
    if not resp.is_success:
        raise HttpError(url, resp.status_code)
    return resp.text
