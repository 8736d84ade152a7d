# seo_analyzer/render.py
# --------------------------------------------------------------------------------------
# Headless render collaborator. Playwright's sync API runs in a worker thread so it
# behaves the same under every event-loop policy. A missing browser, a navigation
# error or a timeout all come back as None: "no rendered HTML" is a normal outcome.
# --------------------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from playwright.sync_api import sync_playwright

from . import config

logger = logging.getLogger(__name__)

PLAYWRIGHT_ARGS = [
    "--disable-gpu",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-setuid-sandbox",
    "--disable-features=SitePerProcess",
    "--disable-blink-features=AutomationControlled",
]

HYDRATION_WAIT_MS = 600


def _launch(p: Any, used: list):
    """Preferred channel, then CHROME_PATH, then bundled Chromium."""
    if config.PREFERRED_CHANNEL in ("msedge", "chrome"):
        try:
            browser = p.chromium.launch(channel=config.PREFERRED_CHANNEL, headless=True, args=PLAYWRIGHT_ARGS)
            used.append(config.PREFERRED_CHANNEL)
            return browser
        except Exception as e:
            logger.debug("channel %s unavailable: %s", config.PREFERRED_CHANNEL, e)
    if config.CHROME_PATH:
        try:
            browser = p.chromium.launch(executable_path=config.CHROME_PATH, headless=True, args=PLAYWRIGHT_ARGS)
            used.append("chrome-path")
            return browser
        except Exception as e:
            logger.debug("CHROME_PATH %s unusable: %s", config.CHROME_PATH, e)
    browser = p.chromium.launch(headless=True, args=PLAYWRIGHT_ARGS)
    used.append("chromium")
    return browser


def _render_sync(url: str, timeout_ms: int) -> Dict[str, Any]:
    """
    Returns dict: {"html": Optional[str], "error": Optional[str], "used": str}
    Tries wait_until=RENDER_WAIT_STATE first, then falls back to 'load'.
    """
    used: list = []
    try:
        with sync_playwright() as p:
            browser = _launch(p, used)
            try:
                ctx = browser.new_context(
                    user_agent=config.USER_AGENT,
                    java_script_enabled=config.RENDER_JS_ENABLED,
                    locale="en-US",
                    viewport={"width": 1366, "height": 768},
                    ignore_https_errors=not config.VERIFY_SSL,
                )
                page = ctx.new_page()
                page.set_default_navigation_timeout(timeout_ms)
                try:
                    page.goto(url, wait_until=config.RENDER_WAIT_STATE, timeout=timeout_ms)
                except Exception as e:
                    try:
                        page.goto(url, wait_until="load", timeout=timeout_ms)
                    except Exception as e2:
                        return {"html": None, "error": f"{e} / fallback: {e2}", "used": ",".join(used)}
                page.wait_for_timeout(HYDRATION_WAIT_MS)
                return {"html": page.content(), "error": None, "used": ",".join(used)}
            finally:
                browser.close()
    except Exception as e:
        return {"html": None, "error": str(e), "used": ",".join(used) or "none"}


async def render(url: str, timeout_ms: int = config.RENDER_TIMEOUT_MS) -> Optional[str]:
    """Rendered HTML for *url*, or None if rendering was not possible."""
    res = await asyncio.to_thread(_render_sync, url, timeout_ms)
    if res.get("error"):
        logger.warning("render of %s failed (engine=%s): %s", url, res.get("used"), res["error"])
    return res.get("html")
