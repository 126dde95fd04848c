import json
from typing import Optional

import pytest

from company_research.errors import ErrorClassifier
from company_research.extraction.extractor import InformationExtractor
from company_research.extraction.summaries import SummaryGenerator
from company_research.models import SearchHit
from company_research.research import ResearchOrchestrator
from company_research.scoring import ReliabilityScorer
from company_research.search.aggregator import SearchAggregator
from company_research.search.context import ContextBuilder
from company_research.store import InMemoryEntityStore


class FakeClock:
    """Manual clock: sleep() advances time and records the delay."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakeSearchProvider:
    """Returns canned hits per query keyword; records every call."""

    def __init__(self, hits: Optional[list[SearchHit]] = None, by_keyword: Optional[dict] = None):
        self.hits = hits or []
        self.by_keyword = by_keyword or {}
        self.calls: list[tuple[str, dict]] = []

    def search(self, query: str, **options) -> list[SearchHit]:
        self.calls.append((query, options))
        for keyword, hits in self.by_keyword.items():
            if keyword in query:
                return list(hits)
        return list(self.hits)


class FakeExtractionProvider:
    """Replies from a list (last reply repeats) or raises a given error."""

    def __init__(self, replies=None, error: Optional[Exception] = None, context_window: int = 128000):
        self.replies = list(replies or [])
        self.error = error
        self.context_window = context_window
        self.calls: list[dict] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def complete(self, system_prompt, user_prompt, *, max_tokens, temperature, json_mode=True) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "json_mode": json_mode,
        })
        if self.error is not None:
            raise self.error
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0] if self.replies else ""


def make_hit(
    title: str = "Acme Corp - profile",
    url: str = "https://www.acme.co.jp/company",
    content: str = "Acme Corp was founded in 1998 in Tokyo.",
    score: float = 0.9,
    **kwargs,
) -> SearchHit:
    return SearchHit(title=title, url=url, content=content, score=score, **kwargs)


ACME_REPLY = json.dumps({
    "companyName": "Acme Corp",
    "officialName": "Acme Corporation",
    "phone": "0312345678",
    "industryLarge": "Manufacturing",
    "employees": "1,200名",
    "establishedYear": "1998年",
    "capital": "100 million JPY",
    "prefecture": "東京都",
    "city": "千代田区",
    "branches": [
        {"name": "Osaka Office", "type": "営業所", "phone": "0612345678"},
        {"name": "Head Office", "type": "本社"},
        {"name": "Ginza Showroom", "type": "ショールーム"},
    ],
})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hit_factory():
    return make_hit


@pytest.fixture
def store(clock):
    return InMemoryEntityStore(clock=clock)


@pytest.fixture
def classifier(clock):
    return ErrorClassifier(clock=clock)


@pytest.fixture
def search_provider():
    return FakeSearchProvider(hits=[make_hit()])


@pytest.fixture
def extraction_provider():
    return FakeExtractionProvider(replies=[ACME_REPLY])


@pytest.fixture
def build_researcher(clock, classifier):
    """Factory: a ResearchOrchestrator over the given fake providers."""

    def build(search_provider, extraction_provider, summaries: bool = False) -> ResearchOrchestrator:
        return ResearchOrchestrator(
            aggregator=SearchAggregator(search_provider),
            context_builder=ContextBuilder(),
            extractor=InformationExtractor(extraction_provider),
            scorer=ReliabilityScorer(),
            classifier=classifier,
            clock=clock,
            summaries=SummaryGenerator(extraction_provider) if summaries else None,
        )

    return build


@pytest.fixture
def researcher(build_researcher, search_provider, extraction_provider):
    return build_researcher(search_provider, extraction_provider)
