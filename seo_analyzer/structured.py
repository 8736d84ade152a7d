# seo_analyzer/structured.py
# --------------------------------------------------------------------------------------
# JSON-LD / Microdata / RDFa extraction, JSON-LD validation and type summary.
# Extraction is tolerant: malformed markup still yields a best-effort tree, and a
# JSON-LD block that cannot be parsed is dropped without affecting its siblings.
# --------------------------------------------------------------------------------------

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Union

from bs4 import BeautifulSoup, Tag

from .errors import StructuredDataParseError
from .models import (
    JsonLdItemReport,
    JsonLdSummary,
    JsonLdValidation,
    MicrodataItem,
    MicrodataProperty,
    RdfaItem,
    StructuredData,
    TypeSummary,
)

logger = logging.getLogger(__name__)

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")

# normalized (lower-cased local) type -> required fields
_SD_REQUIRED = {
    "article": ["headline"],
    "blogposting": ["headline"],
    "newsarticle": ["headline"],
    "organization": ["name"],
    "localbusiness": ["name"],
    "product": ["name"],
    "breadcrumblist": ["itemListElement"],
    "faqpage": ["mainEntity"],
    "event": ["name", "startDate"],
}

# ======================================================================================
# Helpers
# ======================================================================================

def _text(node: Tag) -> str:
    return " ".join(node.get_text(separator=" ").split())


def parse_json_ld(raw: str) -> Any:
    """
    Strict parse, then one lenient retry with trailing commas removed.
    Raises StructuredDataParseError if both fail.
    """
    try:
        return json.loads(raw)
    except ValueError:
        pass
    try:
        return json.loads(_TRAILING_COMMA.sub(r"\1", raw))
    except ValueError as e:
        raise StructuredDataParseError(f"unparseable JSON-LD block: {e}") from e


def localname(t: Optional[str]) -> Optional[str]:
    if not t:
        return None
    if "#" in t:
        t = t.rsplit("#", 1)[-1]
    if "/" in t:
        t = t.rstrip("/").rsplit("/", 1)[-1]
    if ":" in t:
        # compact IRIs such as "schema:Article"
        t = t.rsplit(":", 1)[-1]
    t = t.strip()
    return t or None


def jsonld_items(json_ld: List[Any]) -> List[Dict[str, Any]]:
    """Flatten @graph containers and nested arrays into a flat list of nodes."""
    out: List[Dict[str, Any]] = []

    def push(node: Any) -> None:
        if isinstance(node, list):
            for x in node:
                push(x)
        elif isinstance(node, dict):
            out.append(node)

    for block in json_ld or []:
        if isinstance(block, dict) and "@graph" in block:
            push(block["@graph"])
        else:
            push(block)
    return out


def primary_type(item: Dict[str, Any]) -> str:
    typ = item.get("@type")
    if isinstance(typ, list):
        typ = typ[0] if typ else None
    return str(typ) if typ else "Unknown"

# ======================================================================================
# Extraction
# ======================================================================================

def _extract_json_ld(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    blocks: List[Dict[str, Any]] = []
    for tag in soup.find_all("script", type=lambda v: v and "ld+json" in v.lower()):
        raw = tag.string or tag.get_text() or ""
        try:
            data = parse_json_ld(raw)
        except StructuredDataParseError as e:
            logger.debug("dropping JSON-LD block: %s", e)
            continue
        if isinstance(data, list):
            blocks.extend(x for x in data if isinstance(x, dict))
        elif isinstance(data, dict):
            blocks.append(data)
    return blocks


def _extract_microdata(soup: BeautifulSoup) -> List[MicrodataItem]:
    items = []
    for el in soup.select("[itemscope]"):
        props = []
        for p in el.find_all(attrs={"itemprop": True}):
            content = p.get("content")
            value = content.strip() if content is not None else _text(p)
            props.append(MicrodataProperty(prop=p.get("itemprop") or "", value=value))
        items.append(MicrodataItem(itemtype=el.get("itemtype") or None, properties=props))
    return items


def _extract_rdfa(soup: BeautifulSoup) -> List[RdfaItem]:
    items = []
    for el in soup.select("[typeof]"):
        props = [p.get("property") for p in el.find_all(attrs={"property": True})]
        items.append(RdfaItem(
            typeof=el.get("typeof") or "",
            about=el.get("about") or el.get("resource") or None,
            properties=[p for p in props if p],
        ))
    return items


def extract(html: Union[str, bytes, BeautifulSoup], base_url: str) -> StructuredData:
    """Pull JSON-LD blocks, Microdata items and RDFa nodes out of *html*."""
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html or "", "lxml")
    return StructuredData(
        json_ld=_extract_json_ld(soup),
        microdata=_extract_microdata(soup),
        rdfa=_extract_rdfa(soup),
    )

# ======================================================================================
# Validation & summary
# ======================================================================================

def required_fields_for(typ: str) -> List[str]:
    return _SD_REQUIRED.get((localname(typ) or "").lower(), [])


def validate_json_ld(json_ld: List[Any]) -> JsonLdValidation:
    report: List[JsonLdItemReport] = []
    for it in jsonld_items(json_ld):
        typ = primary_type(it)
        req = required_fields_for(typ)
        missing = [
            f for f in req
            if f not in it or (isinstance(it.get(f), str) and not it[f].strip())
        ]
        report.append(JsonLdItemReport(type=typ, missing=missing, ok=not missing))
    summary = JsonLdSummary(
        total_items=len(report),
        ok_count=sum(1 for r in report if r.ok),
        has_errors=any(not r.ok for r in report),
    )
    return JsonLdValidation(summary=summary, items=report)


def summarize_types(
    json_ld: List[Any],
    microdata: List[MicrodataItem],
    rdfa: List[RdfaItem],
) -> TypeSummary:
    tokens: List[str] = []
    for item in jsonld_items(json_ld):
        t = item.get("@type")
        if isinstance(t, list):
            tokens.extend(x for x in t if isinstance(x, str))
        elif isinstance(t, str):
            tokens.append(t)
    for md in microdata or []:
        tokens.extend((md.itemtype or "").split())
    for rd in rdfa or []:
        tokens.extend((rd.typeof or "").split())

    types = {ln for ln in (localname(tok) for tok in tokens) if ln}
    return TypeSummary(
        types=sorted(types),
        has_newsarticle=any(t.lower() == "newsarticle" for t in types),
    )
