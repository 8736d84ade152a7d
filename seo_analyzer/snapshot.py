# seo_analyzer/snapshot.py
# --------------------------------------------------------------------------------------
# Static parse: one FetchResult in, one PageSnapshot out. No network access.
# Any byte stream is accepted; missing nodes produce None / empty values.
# --------------------------------------------------------------------------------------

from __future__ import annotations

import collections
import copy
import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from . import structured
from .models import (
    AltCoverageCheck,
    CanonicalCheck,
    Check,
    Checks,
    CompressionCheck,
    ContentStats,
    CountCheck,
    FetchResult,
    HreflangLink,
    ImageRef,
    Keyword,
    LengthCheck,
    OpenGraph,
    PageSnapshot,
    PresenceCheck,
    SocialCardsCheck,
    StructuredBundle,
    TrustSignals,
    TwitterCard,
)

STOPWORDS = {
    # minimal english stopwords for keyword density
    "the","and","for","are","but","not","you","your","with","have","this","that","was",
    "from","they","his","her","she","him","has","had","were","will","what","when","where",
    "who","why","how","can","all","any","each","few","more","most","other","some","such",
    "no","nor","too","very","of","to","in","on","by","is","as","at","it","or","be","we",
    "an","a","our","us","if","out","up","so","do","did","does","their","its","than","then"
}

MAX_LINKS = 200
MAX_IMAGES = 100
TOP_KEYWORDS = 20
AMP_SNIFF_CHARS = 5000

OG_REQUIRED = ("og:title", "og:description", "og:image")
TWITTER_REQUIRED = ("twitter:card", "twitter:title", "twitter:description", "twitter:image")

# removed from the body clone before counting words
_NON_CONTENT = ["script", "style", "noscript", "svg", "nav", "header", "footer", "form", "iframe"]

_WORD_RE = re.compile(r"[a-z0-9]+")
_ROBOTS_SPLIT = re.compile(r"[\s,]+")
_ORG_TYPE_RE = re.compile(r"organization|localbusiness", re.I)
_ENCODINGS = ("br", "gzip", "zstd", "deflate")

# ======================================================================================
# Helpers
# ======================================================================================

def _text(node: Optional[Tag]) -> str:
    if node is None:
        return ""
    return " ".join(node.get_text(separator=" ").split())


def _abs(base: str, href: Optional[str]) -> Optional[str]:
    href = (href or "").strip()
    if not href:
        return None
    try:
        return urljoin(base, href)
    except ValueError:
        return None


def _rel_tokens(tag: Tag) -> List[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [r.lower() for r in rel]


def _norm_urls(urls: List[str]) -> List[str]:
    seen = set()
    out = []
    for u in urls:
        if u not in seen:
            seen.add(u)
            out.append(u)
    return out


def _collect_metas(head: Tag) -> Tuple[Dict[str, str], Optional[str]]:
    """name/property (lower-cased) -> content, first occurrence wins; plus http-equiv charset."""
    metas: Dict[str, str] = {}
    equiv_charset = None
    for meta in head.find_all("meta"):
        key = (meta.get("name") or meta.get("property") or "").strip().lower()
        if key:
            metas.setdefault(key, (meta.get("content") or "").strip())
        if (meta.get("http-equiv") or "").lower() == "content-type" and equiv_charset is None:
            for part in (meta.get("content") or "").split(";"):
                part = part.strip().lower()
                if part.startswith("charset="):
                    equiv_charset = part.split("=", 1)[1].strip() or None
    return metas, equiv_charset


def _find_link(head: Tag, rel: str) -> Optional[Tag]:
    for ln in head.find_all("link", href=True):
        if rel in _rel_tokens(ln):
            return ln
    return None


def robots_tokens(value: Optional[str]) -> List[str]:
    return [t for t in _ROBOTS_SPLIT.split((value or "").lower()) if t]

# ======================================================================================
# Sections
# ======================================================================================

def _classify_links(soup: BeautifulSoup, url: str) -> Tuple[List[str], List[str], List[str]]:
    internal_links, external_links, nofollow_links = [], [], []
    base_host = urlparse(url).netloc.lower()
    for a in soup.find_all("a", href=True):
        absu = _abs(url, a.get("href"))
        if not absu:
            continue
        absu = urldefrag(absu)[0]
        parsed = urlparse(absu)
        if parsed.scheme not in ("http", "https"):
            continue
        (internal_links if parsed.netloc.lower() == base_host else external_links).append(absu)
        if "nofollow" in _rel_tokens(a):
            nofollow_links.append(absu)
    return (
        _norm_urls(internal_links)[:MAX_LINKS],
        _norm_urls(external_links)[:MAX_LINKS],
        _norm_urls(nofollow_links)[:MAX_LINKS],
    )


def _images(soup: BeautifulSoup, url: str) -> Tuple[List[ImageRef], List[ImageRef]]:
    with_alt: List[ImageRef] = []
    missing_alt: List[ImageRef] = []
    for im in soup.find_all("img"):
        alt = (im.get("alt") or "").strip()
        src = _abs(url, im.get("src") or im.get("data-src"))
        parent = im.find_parent("a")
        link = _abs(url, parent.get("href")) if parent is not None else None
        if alt:
            with_alt.append(ImageRef(src=src, link=link, alt=alt))
        else:
            missing_alt.append(ImageRef(src=src, link=link))
    return with_alt, missing_alt


def _content_stats(
    soup: BeautifulSoup,
    metas: Dict[str, str],
    external_links: List[str],
    json_ld: List[dict],
) -> ContentStats:
    text = ""
    if soup.body is not None:
        clone = copy.copy(soup.body)
        for tag in clone.find_all(_NON_CONTENT):
            tag.extract()
        text = clone.get_text(separator=" ")

    tokens = [
        w for w in _WORD_RE.findall(text.lower())
        if len(w) > 2 and w not in STOPWORDS
    ]
    word_count = len(tokens)
    keywords = [
        Keyword(term=w, count=c, density=round(100.0 * c / max(1, word_count), 2))
        for w, c in collections.Counter(tokens).most_common(TOP_KEYWORDS)
    ]

    signals = TrustSignals(
        author_found=bool(
            "author" in metas
            or soup.select_one('[itemprop~="author"], a[rel~="author"], .author, .byline')
        ),
        org_schema=any(
            _ORG_TYPE_RE.search(structured.primary_type(it))
            for it in structured.jsonld_items(json_ld)
        ),
        date_published=bool(
            "article:published_time" in metas
            or soup.select_one('time[datetime], [itemprop~="datePublished"]')
        ),
        contact_link=soup.select_one('a[href*="contact" i]') is not None,
        about_link=soup.select_one('a[href*="about" i]') is not None,
        references_outbound=len(external_links) > 3,
    )
    flags = list(signals.model_dump().values())
    return ContentStats(
        word_count=word_count,
        keywords=keywords,
        trust_signals=signals,
        trust_score=round(sum(flags) / len(flags) * 100),
    )

# ======================================================================================
# Public entrypoint
# ======================================================================================

def build(url: str, fetched: FetchResult) -> PageSnapshot:
    body = fetched.body or ""
    headers = fetched.headers or {}
    soup = BeautifulSoup(body, "lxml")
    head = soup.head or soup
    metas, equiv_charset = _collect_metas(head)

    # --- Meta basics
    title = _text(head.find("title")) or None
    desc = metas.get("description") or metas.get("og:description") or None
    robots = metas.get("robots") or None
    viewport = metas.get("viewport") or None
    viewport_present = "viewport" in metas

    link_canon = _find_link(head, "canonical")
    canon = _abs(url, link_canon.get("href")) if link_canon is not None else None

    # AMP
    amp_link = _find_link(head, "amphtml")
    amp_url = _abs(url, amp_link.get("href")) if amp_link is not None else None
    is_amp = amp_link is not None or "amp-boilerplate" in body[:AMP_SNIFF_CHARS].lower()

    html_tag = soup.find("html")
    lang = ((html_tag.get("lang") if html_tag is not None else None) or "").strip() or None
    meta_charset = head.find("meta", attrs={"charset": True})
    charset = ((meta_charset.get("charset") if meta_charset is not None else None) or "").strip() or equiv_charset

    # hreflang
    hreflang = []
    for ln in head.find_all("link", href=True, hreflang=True):
        code = (ln.get("hreflang") or "").strip().lower()
        href = _abs(url, ln.get("href"))
        if "alternate" in _rel_tokens(ln) and code and href:
            hreflang.append(HreflangLink(hreflang=code, href=href))

    parsed = urlparse(url)
    robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt" if parsed.scheme and parsed.netloc else None

    # Headings
    h1 = [_text(h) for h in soup.find_all("h1")]
    h2 = [_text(h) for h in soup.find_all("h2")]

    internal_links, external_links, nofollow_links = _classify_links(soup, url)
    images_with_alt, images_missing_alt = _images(soup, url)

    # Structured data
    sd = structured.extract(soup, url)
    bundle = StructuredBundle(
        json_ld=sd.json_ld,
        microdata=sd.microdata,
        rdfa=sd.rdfa,
        validation=structured.validate_json_ld(sd.json_ld),
        types=structured.summarize_types(sd.json_ld, sd.microdata, sd.rdfa),
    )

    # Social
    og = OpenGraph(
        title=metas.get("og:title") or title,
        description=metas.get("og:description") or desc,
        image=metas.get("og:image") or None,
        url=metas.get("og:url") or canon or url,
        locale=metas.get("og:locale") or lang,
    )
    twitter = TwitterCard(
        card=metas.get("twitter:card") or None,
        title=metas.get("twitter:title") or og.title,
        description=metas.get("twitter:description") or og.description,
        image=metas.get("twitter:image") or metas.get("twitter:image:src") or og.image,
        url=metas.get("twitter:url") or og.url,
    )

    # --- Checks
    title_len = len(title or "")
    desc_len = len((desc or "").strip())

    total_imgs = len(images_with_alt) + len(images_missing_alt)
    with_alt = len(images_with_alt)
    percent = round(with_alt / total_imgs * 100, 1) if total_imgs else 100.0

    enc_tokens = [t.strip() for t in (headers.get("content-encoding") or "").lower().split(",")]
    compression = next((e for e in _ENCODINGS if e in enc_tokens), "none")

    og_complete = all(p in metas for p in OG_REQUIRED)
    tw_complete = all(p in metas for p in TWITTER_REQUIRED)

    x_robots = headers.get("x-robots-tag") or None
    meta_tokens = robots_tokens(robots)
    header_tokens = robots_tokens(x_robots)
    noindex = "noindex" in meta_tokens or "noindex" in header_tokens
    nofollow = "nofollow" in meta_tokens or "nofollow" in header_tokens
    if noindex and nofollow:
        indexable_value = "noindex,nofollow"
    elif noindex:
        indexable_value = "noindex"
    elif nofollow:
        indexable_value = "nofollow"
    else:
        indexable_value = "index,follow"

    checks = Checks(
        title_length=LengthCheck(chars=title_len, ok=30 <= title_len <= 65, value=f"{title_len} chars"),
        meta_description_length=LengthCheck(chars=desc_len, ok=70 <= desc_len <= 160, value=f"{desc_len} chars"),
        h1_count=CountCheck(count=len(h1), ok=len(h1) == 1, value=str(len(h1))),
        viewport_meta=PresenceCheck(
            present=viewport_present, ok=viewport_present, value=viewport or ("present" if viewport_present else "missing"),
        ),
        canonical=CanonicalCheck(
            present=canon is not None,
            absolute=bool(canon and canon.startswith("http")),
            self_ref=canon is not None and canon in (url, fetched.final_url),
            ok=bool(canon and canon.startswith("http")),
            value=canon or "missing",
        ),
        alt_coverage=AltCoverageCheck(
            with_alt=with_alt,
            total_imgs=total_imgs,
            percent=percent,
            ok=(with_alt / total_imgs >= 0.8) if total_imgs else True,
            value=f"{percent}%",
        ),
        lang=PresenceCheck(present=lang is not None, ok=lang is not None, value=lang or "missing"),
        charset=PresenceCheck(present=charset is not None, ok=charset is not None, value=charset or "missing"),
        compression=CompressionCheck(
            gzip="gzip" in enc_tokens,
            brotli="br" in enc_tokens,
            ok=compression in ("gzip", "br"),
            value=compression,
        ),
        social_cards=SocialCardsCheck(
            og_complete=og_complete,
            twitter_complete=tw_complete,
            ok=og_complete and tw_complete,
            value=f"OG:{'ok' if og_complete else 'miss'} / TW:{'ok' if tw_complete else 'miss'}",
        ),
        robots_meta_index=Check(
            ok="noindex" not in meta_tokens, value="noindex" if "noindex" in meta_tokens else "index",
        ),
        robots_meta_follow=Check(
            ok="nofollow" not in meta_tokens, value="nofollow" if "nofollow" in meta_tokens else "follow",
        ),
        x_robots_tag=Check(
            ok=not ("noindex" in header_tokens or "nofollow" in header_tokens), value=x_robots or "absent",
        ),
        indexable=Check(ok=not noindex, value=indexable_value),
    )

    content_length_hdr = (headers.get("content-length") or "").strip()
    content_length = int(content_length_hdr) if content_length_hdr.isdigit() else len(body.encode("utf-8"))

    return PageSnapshot(
        url=url,
        final_url=fetched.final_url or url,
        status_code=fetched.status_code,
        content_length=content_length,
        load_time_ms=fetched.elapsed_ms,
        title=title,
        description=desc,
        canonical_url=canon,
        robots_meta=robots,
        viewport_meta=viewport,
        lang=lang,
        charset=charset,
        compression=compression,
        robots_url=robots_url,
        hreflang=hreflang,
        is_amp=is_amp,
        amp_url=amp_url,
        h1=h1,
        h2=h2,
        internal_links=internal_links,
        external_links=external_links,
        nofollow_links=nofollow_links,
        structured=bundle,
        open_graph=og,
        twitter_card=twitter,
        has_open_graph=any(k.startswith("og:") for k in metas),
        has_twitter_card=any(k.startswith("twitter:") for k in metas),
        images_with_alt=images_with_alt[:MAX_IMAGES],
        images_missing_alt=images_missing_alt[:MAX_IMAGES],
        checks=checks,
        content=_content_stats(soup, metas, external_links, sd.json_ld),
    )
