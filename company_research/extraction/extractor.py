"""
Information Extraction

Sends a company's search context to the extraction model and turns the
reply into Company fields plus raw branch entries.

Before sending, the prompt size is estimated (1 token ~ 1.3 chars). If
system + user prompt would not fit in the model's context window minus
the response budget, the context is cut to the largest size that fits.
This is on top of the ContextBuilder's character budget.
"""

import logging
import math
from typing import Any, Optional

from pydantic import ValidationError

from ..config import EXTRACTION, ExtractionConfig
from ..errors import NoContext
from ..interfaces import ExtractionProvider
from ..models import BranchRecord, BranchType, ExtractionResult, ParseTier, SearchHit, unique_urls
from ..normalize import clean_text, coerce_int, coerce_year, format_phone_number
from ..search.context import truncate
from .parser import parse_response
from .prompts import EXTRACTION_PROMPT_FILE, load_prompt

logger = logging.getLogger(__name__)


EXTRACTED_FIELDS = (
    "name", "official_name", "phone", "industry_large", "industry_medium",
    "employees", "established_year", "capital", "listing_status", "postal_code",
    "prefecture", "city", "address_detail", "representative_name",
    "representative_title", "philosophy", "website",
)

# Retail sites are not sales targets
EXCLUDED_BRANCH_TERMS = ("店舗", "ショールーム", "ショップ", "販売店", "showroom", "shop", "store")


def normalize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Every extractable Company field, coerced to its type (None if unknown).

    The raw reliability score is passed through untouched under
    "reliability_score" when present.
    """
    data: dict[str, Any] = {}
    for name in EXTRACTED_FIELDS:
        value = fields.get(name)
        if name == "employees":
            data[name] = coerce_int(value)
        elif name == "established_year":
            data[name] = coerce_year(value)
        elif name == "phone":
            data[name] = format_phone_number(clean_text(value))
        else:
            data[name] = clean_text(value)
    if "reliability_score" in fields:
        data["reliability_score"] = fields["reliability_score"]
    return data


def provenance(hits: list[SearchHit], limit: int) -> tuple[list[str], Optional[str], Optional[str]]:
    """
    (source_urls, official_site_url, primary_source_url) for a hit list.

    official_site_url is the first official hit, else the first hit.
    primary_source_url is the hit the provider scored highest.
    """
    if not hits:
        return [], None, None
    source_urls = unique_urls([hit.url for hit in hits], limit)
    official = next((hit.url for hit in hits if hit.is_official and hit.url), None)
    official = official or hits[0].url or None
    primary = max(hits, key=lambda hit: hit.score).url or None
    return source_urls, official, primary


class InformationExtractor:
    """
    Extracts structured company fields from search context.

    Args:
        provider: Chat-completion backend (JSON object mode required).
        config: Token budgets, temperature and provenance limits.
        prompt_file: Prompt file under company_research/prompts/.
    """

    def __init__(
        self,
        provider: ExtractionProvider,
        config: ExtractionConfig = EXTRACTION,
        prompt_file: str = EXTRACTION_PROMPT_FILE,
    ):
        self.provider = provider
        self.config = config
        self.system_prompt, self.user_template = load_prompt(prompt_file)

    # ─────────────────────────────────────────────────────────────────────────
    # PROMPTS
    # ─────────────────────────────────────────────────────────────────────────

    def estimate_tokens(self, text: str) -> int:
        return math.ceil(len(text) / self.config.chars_per_token)

    def build_user_prompt(self, company_name: str, context: str, phone: Optional[str] = None) -> str:
        return self.user_template.format(
            company_name=company_name,
            phone_line=f"Phone: {phone}\n" if phone else "",
            context=context,
        )

    def fit_context(self, company_name: str, context: str, phone: Optional[str] = None) -> str:
        """
        Cut the context so the whole prompt fits the model.

        Returns:
            The context unchanged when it fits, else a truncated copy.
        """
        budget = self.provider.context_window - self.config.max_response_tokens
        system_tokens = self.estimate_tokens(self.system_prompt)
        prompt_tokens = system_tokens + self.estimate_tokens(
            self.build_user_prompt(company_name, context, phone)
        )
        if prompt_tokens <= budget:
            return context

        overhead = system_tokens + self.estimate_tokens(self.build_user_prompt(company_name, "", phone))
        safe_chars = max(0, math.floor((budget - overhead) * self.config.chars_per_token))
        logger.warning(
            "Prompt for %r is ~%d tokens (budget %d); cutting context from %d to %d chars",
            company_name, prompt_tokens, budget, len(context), safe_chars,
        )
        return truncate(context, safe_chars) if safe_chars else ""

    # ─────────────────────────────────────────────────────────────────────────
    # EXTRACTION
    # ─────────────────────────────────────────────────────────────────────────

    def extract(
        self,
        company_name: str,
        context: str,
        phone: Optional[str] = None,
        hits: Optional[list[SearchHit]] = None,
    ) -> ExtractionResult:
        """
        Ask the model for the company's profile and decode the reply.

        Args:
            company_name: Company being researched.
            context: Output of ContextBuilder.build().
            phone: Known phone number, passed to the model as a hint.
            hits: The hits behind the context, for provenance.

        Returns:
            ExtractionResult with every extractable field (None if unknown).

        Raises:
            NoContext: Context is empty (before or after token fitting).
            NoResponse: The provider returned no choices.
            UnparseableResponse: No parse tier could decode the reply.
        """
        if not context or not context.strip():
            raise NoContext()

        context = self.fit_context(company_name, context, phone)
        if not context.strip():
            raise NoContext("required search context is missing after token budgeting")

        raw = self.provider.complete(
            self.system_prompt,
            self.build_user_prompt(company_name, context, phone),
            max_tokens=self.config.max_response_tokens,
            temperature=self.config.temperature,
            json_mode=True,
        )

        parsed = parse_response(raw)
        data = normalize_fields(parsed.data)
        provider_score = data.pop("reliability_score", None)
        if parsed.tier is ParseTier.SCRAPE:
            provider_score = None

        source_urls, official_url, primary_url = provenance(hits or [], self.config.max_source_urls)

        filled = sum(1 for name in EXTRACTED_FIELDS if data.get(name) not in (None, ""))
        logger.info(
            "Extracted %d/%d fields for %r (tier %d, %d branches)",
            filled, len(EXTRACTED_FIELDS), company_name, parsed.tier, len(parsed.branches),
        )
        return ExtractionResult(
            data=data,
            branches=parsed.branches,
            source_urls=source_urls,
            official_site_url=official_url,
            primary_source_url=primary_url,
            parse_tier=parsed.tier,
            provider_score=provider_score,
        )

    def extract_branches(self, result: ExtractionResult, company_id: str) -> list[BranchRecord]:
        """
        Branch records from the raw branch entries, most important first.

        Entries without a name, retail sites and entries that fail
        validation are skipped.
        """
        branches: list[BranchRecord] = []
        for raw in result.branches:
            name = clean_text(raw.get("name"))
            if not name:
                continue
            label = clean_text(raw.get("type")) or ""
            if any(term in f"{name} {label}".lower() for term in EXCLUDED_BRANCH_TERMS):
                logger.debug("Skipping retail site %r", name)
                continue
            try:
                branches.append(BranchRecord(
                    company_id=company_id,
                    name=name,
                    type=BranchType.from_label(label or name),
                    phone=format_phone_number(clean_text(raw.get("phone"))),
                    postal_code=clean_text(raw.get("postalCode") or raw.get("postal_code")),
                    prefecture=clean_text(raw.get("prefecture")),
                    city=clean_text(raw.get("city")),
                    address_detail=clean_text(raw.get("addressDetail") or raw.get("address_detail")),
                    employees=coerce_int(raw.get("employees")),
                    business_hours=clean_text(raw.get("businessHours") or raw.get("business_hours")),
                    notes=clean_text(raw.get("notes")),
                ))
            except ValidationError as e:
                logger.warning("Skipping malformed branch %r: %s", name, e.errors()[0].get("msg"))

        branches.sort(key=lambda branch: branch.importance, reverse=True)
        return branches
