"""
Research Orchestrator

Researches one company end to end:

    Search -> Validate -> (abort | Extract) -> Score -> Assemble
           -> Enrich (news / hiring summaries, optional) -> Branches

Never raises and never retries. Any failure is classified by the
ErrorClassifier and returned as ResearchResult(success=False, error=...).
Retrying a whole research cycle is the batch layer's decision; single
HTTP calls are already retried inside the gateway.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .common.clock import Clock, SystemClock, utc_datetime
from .config import EXTRACTION, ExtractionConfig
from .errors import ErrorClassifier, InvalidInput, NoContext, NoSearchResults
from .extraction.extractor import InformationExtractor
from .extraction.summaries import SummaryGenerator
from .models import Company, ExtractionResult, ResearchResult, SearchValidation
from .normalize import format_phone_number, infer_location_from_phone
from .scoring import ReliabilityScorer
from .search.aggregator import SearchAggregator
from .search.context import ContextBuilder

logger = logging.getLogger(__name__)


@dataclass
class ResearchStats:
    """Running counts for research calls in this process."""
    total: int = 0
    successful: int = 0
    failed: int = 0
    total_duration_seconds: float = 0.0

    @property
    def average_duration_seconds(self) -> float:
        return round(self.total_duration_seconds / self.total, 2) if self.total else 0.0

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "average_duration_seconds": self.average_duration_seconds,
        }


class ResearchOrchestrator:
    """
    Composes search, context building, extraction and scoring.

    Args:
        aggregator: Runs and validates the company's searches.
        context_builder: Bounds the evidence sent to the model.
        extractor: Calls the model and decodes its reply.
        scorer: Computes the reliability score.
        classifier: Turns failures into ErrorRecords.
        clock: Time source for ids, timestamps and durations.
        summaries: News/recruitment summarizer. None disables enrichment.
        config: Enrichment toggles.
    """

    def __init__(
        self,
        aggregator: SearchAggregator,
        context_builder: ContextBuilder,
        extractor: InformationExtractor,
        scorer: ReliabilityScorer,
        classifier: ErrorClassifier,
        clock: Optional[Clock] = None,
        summaries: Optional[SummaryGenerator] = None,
        config: ExtractionConfig = EXTRACTION,
    ):
        self.aggregator = aggregator
        self.context_builder = context_builder
        self.extractor = extractor
        self.scorer = scorer
        self.classifier = classifier
        self.clock = clock or SystemClock()
        self.summaries = summaries
        self.config = config
        self.stats = ResearchStats()

    def research(
        self,
        company_name: str,
        phone: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
        company_id: Optional[str] = None,
    ) -> ResearchResult:
        """
        Research one company.

        Args:
            company_name: Company to research.
            phone: Known phone number (adds a phone-keyed search).
            context: Extra details for error classification (e.g. batch_size).
            company_id: Id of a company researched before; a new id is
                generated when None.

        Returns:
            ResearchResult; success=False carries the classified error.
        """
        started = self.clock.now()
        stage = "input"
        validation: Optional[SearchValidation] = None
        self.stats.total += 1

        try:
            name = (company_name or "").strip()
            if not name:
                raise InvalidInput()
            logger.info("Researching %r%s", name, f" (phone {phone})" if phone else "")

            stage = "search"
            bundle = self.aggregator.search(name, phone)
            validation = bundle.validation

            stage = "validate"
            if bundle.validation.total_count == 0:
                raise NoSearchResults()

            stage = "context"
            context_text = self.context_builder.build(bundle.hits)
            if not context_text:
                raise NoContext()

            stage = "extract"
            extraction = self.extractor.extract(name, context_text, phone, hits=bundle.hits)

            stage = "score"
            score = self.scorer.final_score(
                extraction.data, bundle.validation, True, extraction.provider_score,
            )

            stage = "assemble"
            company = self.assemble_company(name, phone, extraction, score, company_id)

            stage = "enrich"
            self._enrich(company)

            stage = "branches"
            branches = self.extractor.extract_branches(extraction, company.id)

        except Exception as e:
            duration = self.clock.now() - started
            self.stats.failed += 1
            self.stats.total_duration_seconds += duration
            error = self.classifier.classify(e, {
                **(context or {}),
                "company_name": company_name,
                "phone": phone,
                "stage": stage,
            })
            logger.warning("Research failed for %r at %s: %s", company_name, stage, error.message)
            return ResearchResult(
                success=False,
                error=error,
                validation=validation,
                duration_seconds=round(duration, 3),
            )

        duration = self.clock.now() - started
        self.stats.successful += 1
        self.stats.total_duration_seconds += duration
        logger.info(
            "Research complete for %r: score %d, %d branches, %.1fs",
            name, company.reliability_score, len(branches), duration,
        )
        return ResearchResult(
            success=True,
            company=company,
            branches=branches,
            validation=validation,
            parse_tier=extraction.parse_tier,
            duration_seconds=round(duration, 3),
        )

    def assemble_company(
        self,
        company_name: str,
        phone: Optional[str],
        extraction: ExtractionResult,
        score: int,
        company_id: Optional[str] = None,
    ) -> Company:
        """
        Build the Company from extracted fields, filling gaps from the input.

        - name / official name fall back to the requested name
        - phone falls back to the input phone, hyphenated
        - prefecture / city are inferred from major area codes when missing
        - id is company_id when given, else a fresh one
        """
        data = dict(extraction.data)
        data["name"] = data.get("name") or company_name
        data["official_name"] = data.get("official_name") or data["name"]
        data["phone"] = data.get("phone") or format_phone_number(phone)

        if data["phone"] and not data.get("prefecture"):
            prefecture, city = infer_location_from_phone(data["phone"])
            if prefecture:
                data["prefecture"] = prefecture
                data["city"] = data.get("city") or city

        company = Company(
            id=company_id or Company.generate_id(company_name, self.clock.now()),
            **data,
            source_urls=extraction.source_urls,
            official_site_url=extraction.official_site_url,
            primary_source_url=extraction.primary_source_url,
            reliability_score=score,
        )
        company.mark_success(utc_datetime(self.clock))
        return company

    def _enrich(self, company: Company) -> None:
        """Fill news and hiring summaries. Failures are logged and skipped."""
        if self.summaries is None:
            return
        name = company.name
        if self.config.enable_news_summary:
            try:
                company.news_summary = self.summaries.summarize_news(
                    name, self.aggregator.search_news(name),
                )
            except Exception as e:
                logger.warning("News summary skipped for %r: %s: %s", name, type(e).__name__, e)
        if self.config.enable_recruitment_summary:
            try:
                company.recruitment_summary = self.summaries.summarize_recruitment(
                    name, self.aggregator.search_recruitment(name),
                )
            except Exception as e:
                logger.warning("Recruitment summary skipped for %r: %s: %s", name, type(e).__name__, e)
