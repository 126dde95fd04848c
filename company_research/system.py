"""
Company Research System

The public entry point. Wires the gateway, providers, search, extraction,
scoring and batch layers together and exposes:

    research_one(name, phone)     one company, nothing persisted
    run_batch(max_batch_size)     the store's pending queue
    run_for_names(names)          specific entries, whatever their status
    stop_batch()                  stop the active batch before its next company
    get_stats()                   request and error counters
    test_connections()            one cheap call per provider

Every collaborator is passed in. `build()` assembles the production
wiring from API keys; tests construct the pieces with fakes.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import httpx

from .common.cache import FileResponseCache, MemoryResponseCache, ResponseCache
from .common.clock import Clock, SystemClock
from .config import (
    EXTRACTION,
    PROCESSING,
    SCORING,
    SEARCH,
    APIKeys,
    ExtractionConfig,
    ProcessingConfig,
    ScoringConfig,
    SearchConfig,
)
from .batch import BatchOrchestrator
from .errors import ErrorClassifier, ResearchError
from .extraction.extractor import InformationExtractor
from .extraction.openai_client import OpenAIExtractionProvider
from .extraction.summaries import SummaryGenerator
from .gateway import HttpGateway
from .interfaces import EntityStore, Notifier
from .models import BatchReport, ResearchResult
from .research import ResearchOrchestrator
from .scoring import ReliabilityScorer
from .search.aggregator import SearchAggregator
from .search.context import ContextBuilder
from .search.tavily import TavilySearchProvider

logger = logging.getLogger(__name__)


@dataclass
class SystemStats:
    """Snapshot returned by CompanyResearchSystem.get_stats()."""
    request_count: int = 0
    error_counts_by_type: dict[str, int] = field(default_factory=dict)
    error_counts_by_severity: dict[str, int] = field(default_factory=dict)
    research: dict = field(default_factory=dict)


class CompanyResearchSystem:
    """
    Facade over the research and batch orchestrators.

    Args:
        researcher: Single-company research.
        batch: Batch runner over the entity store.
        classifier: Shared error classifier (source of error counts).
        gateway: HTTP gateway (source of request counts). Closed by close().
        search_provider: Used by test_connections().
        extraction_provider: Used by test_connections().
    """

    def __init__(
        self,
        researcher: ResearchOrchestrator,
        batch: BatchOrchestrator,
        classifier: ErrorClassifier,
        gateway: Optional[HttpGateway] = None,
        search_provider=None,
        extraction_provider=None,
    ):
        self.researcher = researcher
        self.batch = batch
        self.classifier = classifier
        self.gateway = gateway
        self.search_provider = search_provider
        self.extraction_provider = extraction_provider

    @classmethod
    def build(
        cls,
        keys: APIKeys,
        store: EntityStore,
        *,
        notifier: Optional[Notifier] = None,
        clock: Optional[Clock] = None,
        client: Optional[httpx.Client] = None,
        cache: Optional[ResponseCache] = None,
        cache_dir: Optional[Union[str, Path]] = None,
        processing: ProcessingConfig = PROCESSING,
        search: SearchConfig = SEARCH,
        extraction: ExtractionConfig = EXTRACTION,
        scoring: ScoringConfig = SCORING,
    ) -> "CompanyResearchSystem":
        """
        Production wiring: Tavily search, OpenAI extraction, shared gateway.

        Args:
            keys: API credentials.
            store: Queue and result tables for batch runs.
            notifier: End-of-batch notifications (defaults to the log).
            clock: Time source shared by every component.
            client: httpx client for the gateway (tests pass a MockTransport client).
            cache: Response cache. Defaults to a file cache under cache_dir,
                else an in-memory cache.
            cache_dir: Folder for the file response cache.

        Raises:
            ConfigurationError: An API key is missing.
        """
        clock = clock or SystemClock()
        if cache is None:
            cache = FileResponseCache(cache_dir, clock=clock) if cache_dir else MemoryResponseCache(clock=clock)

        gateway = HttpGateway(client=client, clock=clock, config=processing, cache=cache)
        try:
            search_provider = TavilySearchProvider(gateway, keys.tavily, config=search, processing=processing)
            extraction_provider = OpenAIExtractionProvider(
                gateway, keys.openai, config=extraction, processing=processing,
            )
        except ResearchError:
            gateway.close()
            raise

        classifier = ErrorClassifier(clock=clock)
        researcher = ResearchOrchestrator(
            aggregator=SearchAggregator(search_provider, config=search),
            context_builder=ContextBuilder.from_config(extraction),
            extractor=InformationExtractor(extraction_provider, config=extraction),
            scorer=ReliabilityScorer(scoring),
            classifier=classifier,
            clock=clock,
            summaries=SummaryGenerator(extraction_provider, config=extraction),
            config=extraction,
        )
        batch = BatchOrchestrator(
            store, researcher, classifier, notifier=notifier, clock=clock, config=processing,
        )
        return cls(
            researcher, batch, classifier,
            gateway=gateway,
            search_provider=search_provider,
            extraction_provider=extraction_provider,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # OPERATIONS
    # ─────────────────────────────────────────────────────────────────────────

    def research_one(self, company_name: str, phone: Optional[str] = None) -> ResearchResult:
        """Research one company without touching the store."""
        return self.researcher.research(company_name, phone)

    def run_batch(self, max_batch_size: Optional[int] = None) -> BatchReport:
        return self.batch.run(max_batch_size)

    def run_for_names(self, names: list[str]) -> BatchReport:
        return self.batch.run_for_names(names)

    def stop_batch(self) -> None:
        self.batch.stop()

    @property
    def is_processing(self) -> bool:
        return self.batch.is_processing

    def get_stats(self) -> SystemStats:
        return SystemStats(
            request_count=self.gateway.stats().request_count if self.gateway else 0,
            error_counts_by_type=self.classifier.counts_by_type,
            error_counts_by_severity=self.classifier.counts_by_severity,
            research=self.researcher.stats.as_dict(),
        )

    def test_connections(self) -> dict[str, bool]:
        """One minimal call per provider; a failure is logged, not raised."""
        results = {}
        for label, provider in (("search", self.search_provider), ("extraction", self.extraction_provider)):
            if provider is None:
                continue
            try:
                results[label] = provider.test_connection()
            except ResearchError as e:
                logger.error("%s connection test failed: %s", label.capitalize(), e)
                results[label] = False
        return results

    def close(self) -> None:
        if self.gateway is not None:
            self.gateway.close()

    def __enter__(self) -> "CompanyResearchSystem":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
