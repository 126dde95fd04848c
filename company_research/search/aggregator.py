"""
Search Aggregation

Issues the queries for one company, unions their hits, flags hits from
the company's own site and validates how many hits actually mention
the company.

Queries:
    primary  "<name> 会社概要 本社所在地 設立 ..." (advanced depth, raw content)
    phone    "<phone> 会社 企業 法人"              (only when a phone is known)

Relevance of one hit is 0.8 when the normalized name appears in its
title, 0.6 when it appears only in its content, else 0. Confidence is
the mean relevance over all hits.
"""

import logging
from typing import Optional
from urllib.parse import urlsplit

from ..config import SEARCH, SearchConfig
from ..interfaces import SearchProvider
from ..models import SearchBundle, SearchHit, SearchValidation
from ..normalize import name_slug, normalize_company_name, normalize_text

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# QUERY TERMS
# ─────────────────────────────────────────────────────────────────────────────

COMPANY_QUERY_TERMS = [
    "会社概要", "本社所在地", "設立", "従業員数", "資本金",
    "代表取締役", "電話番号", "郵便番号", "支店", "営業所",
]

# Job boards crowd out profile pages for the primary query
EXCLUDED_QUERY_TERMS = ["-求人", "-転職", "-doda", "-mynavi"]

PHONE_QUERY_TERMS = ["会社", "企業", "法人"]
NEWS_QUERY_TERMS = ["最新ニュース", "プレスリリース", "発表"]
RECRUITMENT_QUERY_TERMS = ["採用情報", "求人", "新卒採用", "中途採用"]

# Sites that mention many companies and are never a company's own site
NON_OFFICIAL_DOMAINS = (
    "wikipedia.org", "linkedin.com", "facebook.com", "twitter.com", "x.com",
    "instagram.com", "youtube.com", "google.com", "yahoo.co.jp", "bloomberg.com",
    "crunchbase.com", "nikkei.com", "prtimes.jp", "baseconnect.in", "indeed.com",
    "doda.jp", "mynavi.jp", "rikunabi.com", "en-japan.com", "openwork.jp",
    "glassdoor.com", "townwork.net",
)


def build_company_query(company_name: str) -> str:
    """Name plus fact-seeking terms, job boards excluded."""
    return " ".join([company_name.strip(), *COMPANY_QUERY_TERMS, *EXCLUDED_QUERY_TERMS])


def build_phone_query(phone: str) -> str:
    return " ".join([phone.strip(), *PHONE_QUERY_TERMS])


def _host(url: str) -> str:
    host = (urlsplit(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def _domain_matches(host: str, domain: str) -> bool:
    domain = domain.lower().strip()
    return bool(domain) and (host == domain or host.endswith("." + domain))


def is_official_url(url: str, company_name: str, official_domains: tuple = ()) -> bool:
    """
    True when the URL looks like the company's own site.

    A configured official domain always matches. Otherwise the host must
    not be a known aggregator/social/job site, and the ASCII slug of the
    company name (3+ chars) must appear in one of the host's labels.
    """
    if not url:
        return False
    host = _host(url)
    if not host:
        return False
    if any(_domain_matches(host, domain) for domain in official_domains):
        return True
    if any(_domain_matches(host, domain) for domain in NON_OFFICIAL_DOMAINS):
        return False

    slug = name_slug(company_name)
    if len(slug) < 3:
        return False
    labels = host.split(".")[:-1]  # drop the TLD
    return any(slug in label.replace("-", "") for label in labels)


# ─────────────────────────────────────────────────────────────────────────────
# VALIDATION
# ─────────────────────────────────────────────────────────────────────────────

def hit_relevance(hit: SearchHit, normalized_name: str, config: SearchConfig = SEARCH) -> float:
    """Max of title-match and content-match weights for one hit."""
    if not normalized_name:
        return 0.0
    title_score = config.title_match_weight if normalized_name in normalize_text(hit.title) else 0.0
    content_score = config.content_match_weight if normalized_name in normalize_text(hit.content) else 0.0
    return max(title_score, content_score)


def validate_hits(hits: list[SearchHit], company_name: str, config: SearchConfig = SEARCH) -> SearchValidation:
    """
    Relevance verdict for a company's hits.

    - No hits at all: invalid, confidence 0. The caller must abort.
    - Some relevant hits: valid, confidence = mean relevance.
    - Hits but none relevant: still valid, confidence floored at
      config.low_relevance_confidence_floor and flagged low_relevance.
      Exact-name matching misses abbreviations and translations.
    """
    total = len(hits)
    if total == 0:
        return SearchValidation(is_valid=False, confidence=0.0, relevant_count=0, total_count=0)

    normalized_name = normalize_company_name(company_name)
    scores = [hit_relevance(hit, normalized_name, config) for hit in hits]
    relevant = sum(1 for score in scores if score > 0)
    confidence = sum(scores) / total

    if relevant == 0:
        return SearchValidation(
            is_valid=True,
            confidence=max(confidence, config.low_relevance_confidence_floor),
            relevant_count=0,
            total_count=total,
            low_relevance=True,
        )

    return SearchValidation(
        is_valid=True,
        confidence=min(confidence, 1.0),
        relevant_count=relevant,
        total_count=total,
    )


# ─────────────────────────────────────────────────────────────────────────────
# AGGREGATOR
# ─────────────────────────────────────────────────────────────────────────────

class SearchAggregator:
    """
    Runs a company's queries against a SearchProvider and validates them.

    Provider failures propagate unchanged; re-querying is the caller's call.

    Args:
        provider: Search backend.
        config: Result counts, match weights and the low-relevance floor.
    """

    def __init__(self, provider: SearchProvider, config: SearchConfig = SEARCH):
        self.provider = provider
        self.config = config

    def search(self, company_name: str, phone: Optional[str] = None) -> SearchBundle:
        """
        Gather and validate hits for one company.

        Args:
            company_name: Company to research.
            phone: Known phone number; adds a second, phone-keyed query.

        Returns:
            SearchBundle with hits from every query (primary first, no
            URL dedup) and the validation verdict.
        """
        queries = [build_company_query(company_name)]
        hits = list(self.provider.search(
            queries[0],
            max_results=self.config.max_results,
            search_depth="advanced",
            include_raw_content=True,
        ))

        if phone and phone.strip():
            phone_query = build_phone_query(phone)
            queries.append(phone_query)
            hits.extend(self.provider.search(
                phone_query,
                max_results=self.config.phone_max_results,
                search_depth="basic",
            ))

        hits = self.mark_official(hits, company_name)
        validation = validate_hits(hits, company_name, self.config)

        logger.info(
            "Search for %r: %d hits (%d official), %d relevant, confidence %.2f%s",
            company_name, validation.total_count, sum(1 for h in hits if h.is_official),
            validation.relevant_count, validation.confidence,
            " [low relevance]" if validation.low_relevance else "",
        )
        return SearchBundle(
            company_name=company_name,
            queries=queries,
            hits=hits,
            validation=validation,
        )

    def search_news(self, company_name: str) -> list[SearchHit]:
        """Recent news and press releases about the company."""
        query = " ".join([company_name.strip(), *NEWS_QUERY_TERMS])
        hits = self.provider.search(
            query,
            max_results=self.config.topic_max_results,
            search_depth="basic",
            topic="news",
            days=self.config.news_days,
        )
        return self.mark_official(list(hits), company_name)

    def search_recruitment(self, company_name: str) -> list[SearchHit]:
        """Hiring pages and job listings for the company."""
        query = " ".join([company_name.strip(), *RECRUITMENT_QUERY_TERMS])
        hits = self.provider.search(
            query,
            max_results=self.config.topic_max_results,
            search_depth="basic",
        )
        return self.mark_official(list(hits), company_name)

    def mark_official(self, hits: list[SearchHit], company_name: str) -> list[SearchHit]:
        """Copies of the hits with is_official set (never cleared)."""
        return [
            hit.model_copy(update={
                "is_official": hit.is_official
                or is_official_url(hit.url, company_name, self.config.official_domains)
            })
            for hit in hits
        ]
