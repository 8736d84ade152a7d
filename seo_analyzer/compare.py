# seo_analyzer/compare.py
# --------------------------------------------------------------------------------------
# Field-by-field comparison of two snapshots. Used for AMP vs canonical and for
# static vs rendered; both go through summarize() so neither diff keeps a reference
# to the snapshots it was built from.
# --------------------------------------------------------------------------------------

from __future__ import annotations

from typing import List, Tuple

from .models import ComparableSummary, CompareReport, CompareRow, PageSnapshot, RenderedDiff

RENDER_EXCERPT_CHARS = 2000

# (label, ComparableSummary field), in display order
ROWS: List[Tuple[str, str]] = [
    ("URL", "url"),
    ("Status", "status"),
    ("Load (ms)", "load_ms"),
    ("Page size (bytes)", "size"),
    ("Title", "title"),
    ("Meta description", "description"),
    ("Canonical", "canonical"),
    ("H1 count", "h1_count"),
    ("First H1", "h1_first"),
    ("Open Graph present", "og"),
    ("Twitter Card present", "tw"),
    ("JSON-LD count", "jsonld_count"),
    ("Internal link count", "internal_count"),
    ("External link count", "external_count"),
    ("Viewport meta present", "viewport"),
]


def summarize(snapshot: PageSnapshot) -> ComparableSummary:
    return ComparableSummary(
        url=snapshot.url,
        status=snapshot.status_code,
        load_ms=snapshot.load_time_ms,
        size=snapshot.content_length,
        title=snapshot.title,
        description=snapshot.description,
        canonical=snapshot.canonical_url,
        h1_count=len(snapshot.h1),
        h1_first=snapshot.h1[0] if snapshot.h1 else None,
        og=snapshot.has_open_graph,
        tw=snapshot.has_twitter_card,
        jsonld_count=len(snapshot.structured.json_ld),
        internal_count=len(snapshot.internal_links),
        external_count=len(snapshot.external_links),
        viewport=snapshot.checks.viewport_meta.present,
    )


def compare_summaries(left: ComparableSummary, right: ComparableSummary) -> CompareReport:
    rows = []
    for label, key in ROWS:
        a = getattr(left, key)
        b = getattr(right, key)
        rows.append(CompareRow(label=label, left_value=a, right_value=b, changed=a != b))
    return CompareReport(rows=rows, change_count=sum(1 for r in rows if r.changed))


def compare(left: PageSnapshot, right: PageSnapshot) -> CompareReport:
    return compare_summaries(summarize(left), summarize(right))


def rendered_diff(static: PageSnapshot, rendered: PageSnapshot, rendered_html: str) -> RenderedDiff:
    """Static vs rendered comparison, plus the quick flags the UI highlights."""
    before = summarize(static)
    after = summarize(rendered)
    return RenderedDiff(
        rendered=True,
        before=before,
        after=after,
        report=compare_summaries(before, after),
        title_changed=before.title != after.title,
        description_changed=before.description != after.description,
        h1_count_changed=before.h1_count != after.h1_count,
        render_excerpt=rendered_html[:RENDER_EXCERPT_CHARS],
    )
