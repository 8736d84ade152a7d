# seo_analyzer/models.py
# --------------------------------------------------------------------------------------
# Typed, immutable records produced by each stage of an analysis run.
# Every record is a frozen pydantic model and serializes with model_dump().
# --------------------------------------------------------------------------------------

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


Scalar = Union[bool, int, float, str, None]

# ======================================================================================
# Fetch
# ======================================================================================

class FetchResult(_Record):
    body: str
    headers: Dict[str, str]
    status_code: int
    final_url: str
    elapsed_ms: int
    # best-effort: whatever the HTTP client exposes
    redirects: int = 0
    http_version: Optional[str] = None

# ======================================================================================
# Structured data
# ======================================================================================

class MicrodataProperty(_Record):
    prop: str
    value: str


class MicrodataItem(_Record):
    itemtype: Optional[str] = None
    properties: List[MicrodataProperty] = []


class RdfaItem(_Record):
    typeof: str
    about: Optional[str] = None
    properties: List[str] = []


class StructuredData(_Record):
    json_ld: List[Dict[str, Any]] = []
    microdata: List[MicrodataItem] = []
    rdfa: List[RdfaItem] = []


class JsonLdItemReport(_Record):
    type: str
    missing: List[str]
    ok: bool


class JsonLdSummary(_Record):
    total_items: int
    ok_count: int
    has_errors: bool


class JsonLdValidation(_Record):
    summary: JsonLdSummary
    items: List[JsonLdItemReport]


class TypeSummary(_Record):
    types: List[str]
    has_newsarticle: bool


class StructuredBundle(StructuredData):
    validation: JsonLdValidation
    types: TypeSummary

# ======================================================================================
# Checks
# ======================================================================================

class Check(_Record):
    ok: bool
    value: Optional[str] = None


class LengthCheck(Check):
    chars: int


class CountCheck(Check):
    count: int


class PresenceCheck(Check):
    present: bool


class CanonicalCheck(PresenceCheck):
    absolute: bool
    self_ref: bool


class AltCoverageCheck(Check):
    with_alt: int
    total_imgs: int
    percent: float


class CompressionCheck(Check):
    gzip: bool
    brotli: bool


class SocialCardsCheck(Check):
    og_complete: bool
    twitter_complete: bool


class Checks(_Record):
    title_length: LengthCheck
    meta_description_length: LengthCheck
    h1_count: CountCheck
    viewport_meta: PresenceCheck
    canonical: CanonicalCheck
    alt_coverage: AltCoverageCheck
    lang: PresenceCheck
    charset: PresenceCheck
    compression: CompressionCheck
    social_cards: SocialCardsCheck
    robots_meta_index: Check
    robots_meta_follow: Check
    x_robots_tag: Check
    indexable: Check

# ======================================================================================
# Page snapshot
# ======================================================================================

class ImageRef(_Record):
    src: Optional[str] = None
    link: Optional[str] = None
    alt: Optional[str] = None


class HreflangLink(_Record):
    hreflang: str
    href: str


class OpenGraph(_Record):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    url: Optional[str] = None
    locale: Optional[str] = None


class TwitterCard(_Record):
    card: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    url: Optional[str] = None


class Keyword(_Record):
    term: str
    count: int
    density: float


class TrustSignals(_Record):
    author_found: bool
    org_schema: bool
    date_published: bool
    contact_link: bool
    about_link: bool
    references_outbound: bool


class ContentStats(_Record):
    word_count: int
    keywords: List[Keyword]
    trust_signals: TrustSignals
    trust_score: int


class PageSnapshot(_Record):
    # identity
    url: str
    final_url: str
    status_code: int
    content_length: int
    load_time_ms: int

    # meta
    title: Optional[str] = None
    description: Optional[str] = None
    canonical_url: Optional[str] = None
    robots_meta: Optional[str] = None
    viewport_meta: Optional[str] = None
    lang: Optional[str] = None
    charset: Optional[str] = None
    compression: str = "none"
    robots_url: Optional[str] = None
    hreflang: List[HreflangLink] = []

    # AMP
    is_amp: bool = False
    amp_url: Optional[str] = None

    # headings & links
    h1: List[str] = []
    h2: List[str] = []
    internal_links: List[str] = []
    external_links: List[str] = []
    nofollow_links: List[str] = []

    structured: StructuredBundle

    # social
    open_graph: OpenGraph
    twitter_card: TwitterCard
    has_open_graph: bool = False
    has_twitter_card: bool = False

    # images
    images_with_alt: List[ImageRef] = []
    images_missing_alt: List[ImageRef] = []

    checks: Checks
    content: ContentStats

# ======================================================================================
# Link & robots audit
# ======================================================================================

class LinkCheckResult(_Record):
    url: str
    status: Optional[int] = None
    final_url: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _status_xor_error(self) -> "LinkCheckResult":
        if (self.status is None) == (self.error is None):
            raise ValueError("exactly one of status or error must be set")
        return self


class LinkChecks(_Record):
    internal: List[LinkCheckResult] = []
    external: List[LinkCheckResult] = []


class RobotsTxtInfo(_Record):
    url: str
    status: Optional[int] = None
    length: Optional[int] = None
    error: Optional[str] = None


class SitemapEntry(_Record):
    url: str
    status: Optional[int] = None
    note: Optional[str] = None
    error: Optional[str] = None


class CrawlChecks(_Record):
    robots_txt: Optional[RobotsTxtInfo] = None
    sitemaps: List[SitemapEntry] = []
    blocked_by_robots: Optional[bool] = None


class SitemapMembership(_Record):
    found: bool
    matches: List[str]
    checked_count: int
    checked: List[str]

# ======================================================================================
# Comparisons
# ======================================================================================

class ComparableSummary(_Record):
    url: Optional[str] = None
    status: Optional[int] = None
    load_ms: Optional[int] = None
    size: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    canonical: Optional[str] = None
    h1_count: int = 0
    h1_first: Optional[str] = None
    og: bool = False
    tw: bool = False
    jsonld_count: int = 0
    internal_count: int = 0
    external_count: int = 0
    viewport: bool = False


class CompareRow(_Record):
    label: str
    left_value: Scalar = None
    right_value: Scalar = None
    changed: bool


class CompareReport(_Record):
    rows: List[CompareRow]
    change_count: int


class AmpCompare(_Record):
    non_amp: ComparableSummary
    amp: ComparableSummary
    report: CompareReport


class RenderedDiff(_Record):
    rendered: bool
    skipped: bool = False
    error: Optional[str] = None
    before: Optional[ComparableSummary] = None
    after: Optional[ComparableSummary] = None
    report: Optional[CompareReport] = None
    title_changed: bool = False
    description_changed: bool = False
    h1_count_changed: bool = False
    render_excerpt: Optional[str] = None

# ======================================================================================
# Collaborators & final result
# ======================================================================================

class PageSpeedStrategy(_Record):
    score: Optional[int] = None
    metrics: Dict[str, Optional[str]] = {}
    error: Optional[str] = None


class PageSpeedResult(_Record):
    enabled: bool
    skipped: bool = False
    error: Optional[str] = None
    mobile: Optional[PageSpeedStrategy] = None
    desktop: Optional[PageSpeedStrategy] = None


class Performance(_Record):
    load_time_ms: int
    page_size_bytes: int
    http_version: Optional[str] = None
    redirects: int = 0
    final_url: str
    is_https: bool


class AnalysisResult(_Record):
    snapshot: PageSnapshot
    performance: Performance
    link_checks: Optional[LinkChecks] = None
    crawl_checks: Optional[CrawlChecks] = None
    sitemap_membership: Optional[SitemapMembership] = None
    amp_compare: Optional[AmpCompare] = None
    amp_compare_error: Optional[str] = None
    pagespeed: PageSpeedResult = PageSpeedResult(enabled=False)
    rendered_diff: RenderedDiff = RenderedDiff(rendered=False, skipped=True)

# ======================================================================================
# Progress events
# ======================================================================================

StageName = Literal["fetch", "parse", "links", "robots", "sitemap", "amp", "pagespeed", "rendered"]
StageStatus = Literal["start", "done", "skipped", "error"]


class StageEvent(_Record):
    event: Literal["stage"] = "stage"
    stage: StageName
    status: StageStatus
    detail: Optional[str] = None


class ResultEvent(_Record):
    event: Literal["done"] = "done"
    result: AnalysisResult


class ErrorEvent(_Record):
    event: Literal["error"] = "error"
    error: str


AnalysisEvent = Union[StageEvent, ResultEvent, ErrorEvent]
