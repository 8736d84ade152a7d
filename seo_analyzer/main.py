# seo_analyzer/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from urllib.parse import urlparse

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from . import config
from .errors import FetchError
from .models import AnalysisEvent
from .orchestrator import analyze, analyze_stream

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(level=config.LOG_LEVEL)
    logging.getLogger("seo_analyzer").setLevel(config.LOG_LEVEL)
    if not config.PAGESPEED_API_KEY:
        logger.warning("PAGESPEED_API_KEY not set; PageSpeed section will be disabled")
    yield


app = FastAPI(title="SEO Analyzer", version="0.1.0", lifespan=lifespan)

# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _normalize_url(u: str) -> str:
    u = (u or "").strip()
    if not u:
        return u
    if not urlparse(u).scheme:
        u = "https://" + u
    return u


def _sse(event: AnalysisEvent) -> str:
    return f"event: {event.event}\ndata: {event.model_dump_json()}\n\n"


async def _event_stream(url: str, do_rendered_check: bool, do_pagespeed: bool) -> AsyncIterator[str]:
    async for event in analyze_stream(url, do_rendered_check=do_rendered_check, do_pagespeed=do_pagespeed):
        yield _sse(event)

# ------------------------------------------------------------------------------
# Routes
# ------------------------------------------------------------------------------

class AnalyzeRequest(BaseModel):
    url: str
    do_rendered_check: bool = False
    do_pagespeed: bool = True


@app.post("/api/analyze")
async def analyze_api(payload: AnalyzeRequest):
    target = _normalize_url(payload.url)
    if not target:
        raise HTTPException(status_code=400, detail="url required")
    try:
        result = await analyze(
            target,
            do_rendered_check=payload.do_rendered_check,
            do_pagespeed=payload.do_pagespeed,
        )
    except FetchError as e:
        return JSONResponse({"url": target, "error": str(e)}, status_code=502)
    return JSONResponse(result.model_dump(mode="json"))


@app.get("/api/analyze/stream")
async def analyze_stream_api(
    url: str = Query("", description="Page to analyze"),
    do_rendered_check: bool = False,
    do_pagespeed: bool = True,
):
    target = _normalize_url(url)
    if not target:
        raise HTTPException(status_code=400, detail="url required")
    return StreamingResponse(
        _event_stream(target, do_rendered_check, do_pagespeed),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "X-Accel-Buffering": "no",
        },
    )


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
