from company_research.config import SearchConfig
from company_research.models import SearchHit
from company_research.search.aggregator import (
    SearchAggregator,
    build_company_query,
    build_phone_query,
    is_official_url,
    validate_hits,
)
from company_research.search.context import ContextBuilder, build_summary_context, truncate

from .conftest import FakeSearchProvider, make_hit


# ─────────────────────────────────────────────────────────────────────────────
# QUERIES & OFFICIAL SITES
# ─────────────────────────────────────────────────────────────────────────────

def test_company_query_excludes_job_boards():
    query = build_company_query("  Acme Corp ")
    assert query.startswith("Acme Corp 会社概要")
    assert "-求人" in query


def test_phone_query():
    assert build_phone_query("03-1234-5678") == "03-1234-5678 会社 企業 法人"


def test_is_official_url():
    assert is_official_url("https://www.acme.co.jp/about", "Acme Corp")
    assert is_official_url("https://acme-global.com", "Acme Corp")
    assert not is_official_url("https://ja.wikipedia.org/wiki/Acme", "Acme Corp")
    assert not is_official_url("https://news.example.com/acme", "Acme Corp")
    assert not is_official_url("", "Acme Corp")
    # Japanese-only names have no ASCII slug; only configured domains match
    assert not is_official_url("https://toyota.jp", "トヨタ株式会社")
    assert is_official_url("https://global.toyota", "トヨタ株式会社", official_domains=("global.toyota",))


# ─────────────────────────────────────────────────────────────────────────────
# VALIDATION
# ─────────────────────────────────────────────────────────────────────────────

def test_no_hits_is_invalid():
    validation = validate_hits([], "Acme Corp")
    assert validation.is_valid is False
    assert validation.confidence == 0.0
    assert validation.total_count == 0


def test_confidence_is_mean_relevance():
    hits = [
        make_hit(title="Acme Corp - profile"),
        make_hit(title="Industry news", content="acme opened a plant"),
        make_hit(title="Unrelated", content="nothing here"),
    ]
    validation = validate_hits(hits, "Acme Corp")
    assert validation.is_valid
    assert validation.relevant_count == 2
    assert validation.total_count == 3
    assert validation.confidence == (0.8 + 0.6 + 0.0) / 3
    assert validation.low_relevance is False


def test_irrelevant_hits_use_confidence_floor():
    validation = validate_hits([make_hit(title="x", content="y")], "Acme Corp")
    assert validation.is_valid
    assert validation.low_relevance
    assert validation.confidence == 0.3


# ─────────────────────────────────────────────────────────────────────────────
# AGGREGATOR
# ─────────────────────────────────────────────────────────────────────────────

def test_search_without_phone_runs_one_query():
    provider = FakeSearchProvider(hits=[make_hit()])
    bundle = SearchAggregator(provider).search("Acme Corp")

    assert len(provider.calls) == 1
    query, options = provider.calls[0]
    assert options["search_depth"] == "advanced"
    assert options["include_raw_content"] is True
    assert options["max_results"] == 10
    assert bundle.queries == [query]
    assert bundle.hits[0].is_official
    assert all(hit.is_official for hit in bundle.hits)
    assert bundle.validation.confidence == 0.8


def test_search_with_phone_adds_phone_query():
    provider = FakeSearchProvider(by_keyword={
        "03-1234-5678": [make_hit(url="https://directory.example/123", title="Acme listing")],
        "会社概要": [make_hit()],
    })
    bundle = SearchAggregator(provider).search("Acme Corp", "03-1234-5678")

    assert len(provider.calls) == 2
    assert provider.calls[1][1] == {"max_results": 5, "search_depth": "basic"}
    assert [hit.url for hit in bundle.hits] == ["https://www.acme.co.jp/company", "https://directory.example/123"]
    assert [hit.is_official for hit in bundle.hits] == [True, False]


def test_blank_phone_is_ignored():
    provider = FakeSearchProvider(hits=[make_hit()])
    SearchAggregator(provider).search("Acme Corp", "  ")
    assert len(provider.calls) == 1


def test_topic_searches():
    provider = FakeSearchProvider(hits=[make_hit()])
    aggregator = SearchAggregator(provider, SearchConfig(news_days=90))

    assert aggregator.search_news("Acme")[0].is_official
    assert provider.calls[0][1]["topic"] == "news"
    assert provider.calls[0][1]["days"] == 90

    aggregator.search_recruitment("Acme")
    assert "採用情報" in provider.calls[1][0]


def test_mark_official_never_clears_flag():
    hit = SearchHit(title="x", url="https://unrelated.example", is_official=True)
    assert SearchAggregator(FakeSearchProvider()).mark_official([hit], "Acme")[0].is_official


# ─────────────────────────────────────────────────────────────────────────────
# CONTEXT
# ─────────────────────────────────────────────────────────────────────────────

def test_truncate_marks_the_cut():
    assert truncate("short", 10) == "short"
    cut = truncate("x" * 100, 50)
    assert len(cut) == 50
    assert cut.endswith("[truncated]")


def test_context_puts_official_hits_first():
    hits = [
        make_hit(title="Directory", url="https://dir.example"),
        make_hit(title="Acme", url="https://acme.co.jp", is_official=True),
    ]
    context = ContextBuilder().build(hits)
    assert context.index("=== Source 1 [official site] ===") < context.index("Title: Directory")
    assert "URL: https://acme.co.jp" in context


def test_context_is_empty_without_hits():
    assert ContextBuilder().build([]) == ""


def test_context_respects_budgets():
    hits = [make_hit(content="a" * 500, url=f"https://site{i}.example") for i in range(10)]
    builder = ContextBuilder(max_context_chars=1500, max_hit_chars=300)
    context = builder.build(hits)

    assert 0 < len(context) <= 1500
    assert "a" * 301 not in context
    assert context == builder.build(hits)
    # blocks are dropped whole, never cut mid-way
    assert context.count("=== Source") == context.count("Content:")


def test_summary_context_limits_hits():
    hits = [make_hit(url=f"https://s{i}.example") for i in range(5)]
    assert build_summary_context(hits, limit=2).count("=== Source") == 2
