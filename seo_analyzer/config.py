# seo_analyzer/config.py
# --------------------------------------------------------------------------------------
# Runtime tunables. Every value can be overridden via environment variables or a
# `.env` file in the working directory.
# --------------------------------------------------------------------------------------

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

# ======================================================================================
# Identity
# ======================================================================================

USER_AGENT = os.getenv(
    "CRAWL_UA",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
    "DNT": "1",
}

# Set VERIFY_SSL=0 only for local testing against self-signed hosts.
VERIFY_SSL = os.getenv("VERIFY_SSL", "1") == "1"

# ======================================================================================
# Timeouts (seconds unless noted)
# ======================================================================================

HTTP_TIMEOUT_MAIN = float(os.getenv("HTTP_TIMEOUT_MAIN", "25"))
LINK_CHECK_TIMEOUT = float(os.getenv("LINK_CHECK_TIMEOUT", "10"))
ROBOTS_TIMEOUT = float(os.getenv("ROBOTS_TIMEOUT", "8"))
SITEMAP_TIMEOUT = float(os.getenv("SITEMAP_TIMEOUT", "10"))

# ======================================================================================
# Sampling bounds
# ======================================================================================

LINK_SAMPLE_INTERNAL = int(os.getenv("LINK_SAMPLE_INTERNAL", "25"))
LINK_SAMPLE_EXTERNAL = int(os.getenv("LINK_SAMPLE_EXTERNAL", "10"))
# default lets every sampled link run at once; lower it to throttle
LINK_CHECK_CONCURRENCY = int(os.getenv(
    "LINK_CHECK_CONCURRENCY", str(LINK_SAMPLE_INTERNAL + LINK_SAMPLE_EXTERNAL)
))

# ======================================================================================
# PageSpeed Insights (optional)
# ======================================================================================

PAGESPEED_API_KEY = os.getenv("PAGESPEED_API_KEY", "").strip() or None
PSI_TIMEOUT = float(os.getenv("PSI_TIMEOUT", "35"))

# ======================================================================================
# Rendered DOM (Playwright)
# ======================================================================================

RENDER_TIMEOUT_MS = int(os.getenv("RENDER_TIMEOUT_MS", "30000"))
RENDER_WAIT_STATE = os.getenv("RENDER_WAIT_STATE", "networkidle")  # or "load"
RENDER_JS_ENABLED = os.getenv("RENDER_JS_ENABLED", "1") == "1"

# prefer system browsers to avoid big downloads
PREFERRED_CHANNEL = os.getenv("PW_BROWSER_CHANNEL", "").strip().lower()  # "msedge" or "chrome"
CHROME_PATH = os.getenv("CHROME_PATH", "").strip()

# ======================================================================================
# Logging
# ======================================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
