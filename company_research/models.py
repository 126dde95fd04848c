"""
Data Models

Type-safe structures for companies, branches, search evidence,
extraction output and batch state. Using Pydantic for validation
and serialization.
"""

import re
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ErrorRecord


MAX_SOURCE_URLS = 5
MIN_RELIABILITY_SCORE = 0
MAX_RELIABILITY_SCORE = 100


def clamp_score(value: Any) -> int:
    """Coerce to an int and clamp into 0-100."""
    score = int(round(float(value)))
    return max(MIN_RELIABILITY_SCORE, min(MAX_RELIABILITY_SCORE, score))


def unique_urls(urls: list[Any], limit: Optional[int] = MAX_SOURCE_URLS) -> list[str]:
    """Order-preserving de-duplication of non-empty URLs, capped at `limit`."""
    seen: list[str] = []
    for url in urls or []:
        if not isinstance(url, str):
            continue
        url = url.strip()
        if url and url not in seen:
            seen.append(url)
        if limit is not None and len(seen) >= limit:
            break
    return seen


# ─────────────────────────────────────────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────────────────────────────────────────

class ProcessingStatus(str, Enum):
    """Per-company queue state: pending -> in_progress -> terminal."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.ERROR, ProcessingStatus.SKIPPED)


# Statuses picked up by a batch run. ERROR rows are left for a manual re-run.
QUEUEABLE_STATUSES = (ProcessingStatus.PENDING, ProcessingStatus.IN_PROGRESS)


class ProcessingResult(str, Enum):
    """Outcome of the last research attempt stored on the company."""
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    INITIALIZED = "INITIALIZED"


class BranchType(str, Enum):
    """Kind of company site. Importance is for display ordering only."""
    HEAD_OFFICE = "head_office"
    BRANCH = "branch"
    OFFICE = "office"
    FACTORY = "factory"
    OTHER = "other"

    @property
    def importance(self) -> int:
        return _BRANCH_IMPORTANCE[self]

    @classmethod
    def from_label(cls, label: Optional[str]) -> "BranchType":
        """
        Map a free-text site label (English or Japanese) onto a BranchType.

        Checked in order, so "本社工場" is a head office.
        """
        if not label:
            return cls.OTHER
        text = label.strip().lower()
        try:
            return cls(text)
        except ValueError:
            pass
        for branch_type, keywords in _BRANCH_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return branch_type
        return cls.OTHER


_BRANCH_IMPORTANCE = {
    BranchType.HEAD_OFFICE: 5,
    BranchType.FACTORY: 4,
    BranchType.BRANCH: 3,
    BranchType.OFFICE: 2,
    BranchType.OTHER: 1,
}

_BRANCH_KEYWORDS = [
    (BranchType.HEAD_OFFICE, ("本社", "本店", "head office", "headquarter", "hq")),
    (BranchType.FACTORY, ("工場", "製作所", "factory", "plant")),
    (BranchType.BRANCH, ("支社", "支店", "branch")),
    (BranchType.OFFICE, ("営業所", "事業所", "出張所", "オフィス", "office")),
]


class ParseTier(IntEnum):
    """Which strategy decoded the extraction response."""
    JSON = 1      # whole response is a JSON object
    FENCED = 2    # JSON object inside a code fence or braces
    SCRAPE = 3    # field labels scraped from free text


class BatchStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"
    STOPPED = "STOPPED"


# ─────────────────────────────────────────────────────────────────────────────
# COMPANY
# ─────────────────────────────────────────────────────────────────────────────

PROFILE_FIELDS = (
    "official_name", "phone", "industry_large", "industry_medium", "employees",
    "established_year", "capital", "listing_status", "postal_code", "prefecture",
    "city", "address_detail", "representative_name", "representative_title",
    "philosophy", "website",
)


class Company(BaseModel):
    """
    A researched company.

    Created when first researched, updated once per research attempt.
    `reliability_score` is clamped into 0-100 on construction and on
    every assignment.
    """
    model_config = ConfigDict(validate_assignment=True)

    id: str = ""
    name: str = ""

    # Profile
    official_name: Optional[str] = None
    phone: Optional[str] = None
    industry_large: Optional[str] = None
    industry_medium: Optional[str] = None
    employees: Optional[int] = None
    established_year: Optional[int] = None
    capital: Optional[str] = None
    listing_status: Optional[str] = None
    postal_code: Optional[str] = None
    prefecture: Optional[str] = None
    city: Optional[str] = None
    address_detail: Optional[str] = None
    representative_name: Optional[str] = None
    representative_title: Optional[str] = None
    philosophy: Optional[str] = None
    website: Optional[str] = None

    # Derived
    news_summary: Optional[str] = None
    recruitment_summary: Optional[str] = None

    # Provenance
    source_urls: list[str] = Field(default_factory=list)
    official_site_url: Optional[str] = None
    primary_source_url: Optional[str] = None

    # Quality
    reliability_score: int = 0

    # Processing metadata
    processed_at: Optional[datetime] = None
    processing_result: ProcessingResult = ProcessingResult.INITIALIZED
    error_message: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return str(value).strip() if value is not None else ""

    @field_validator("reliability_score", mode="before")
    @classmethod
    def _clamp_reliability(cls, value: Any) -> int:
        if value is None:
            return MIN_RELIABILITY_SCORE
        return clamp_score(value)

    @field_validator("source_urls", mode="before")
    @classmethod
    def _dedupe_sources(cls, value: Any) -> list[str]:
        return unique_urls(value or [])

    @staticmethod
    def generate_id(name: str, now: float) -> str:
        """COMP_<ascii slug of the name, max 10 chars>_<epoch ms>."""
        slug = re.sub(r"[^a-zA-Z0-9]", "", name or "").lower()[:10] or "unknown"
        return f"COMP_{slug}_{int(now * 1000)}"

    def is_valid(self) -> bool:
        return bool(self.id.strip()) and bool(self.name.strip())

    @property
    def display_name(self) -> str:
        return self.official_name or self.name

    @property
    def full_address(self) -> str:
        """Japanese-order address: 〒postal prefecture+city+detail."""
        body = "".join(part for part in (self.prefecture, self.city, self.address_detail) if part)
        if self.postal_code:
            return f"〒{self.postal_code} {body}".strip()
        return body

    @property
    def representative_info(self) -> str:
        return " ".join(part for part in (self.representative_title, self.representative_name) if part)

    def completion_percentage(self) -> int:
        """Share of profile fields that hold a value, 0-100."""
        filled = sum(1 for name in PROFILE_FIELDS if getattr(self, name) not in (None, ""))
        return round(filled / len(PROFILE_FIELDS) * 100)

    def mark_success(self, now: datetime) -> None:
        self.processed_at = now
        self.processing_result = ProcessingResult.SUCCESS
        self.error_message = None

    def mark_error(self, message: str, now: datetime) -> None:
        self.processed_at = now
        self.processing_result = ProcessingResult.ERROR
        self.error_message = message


# ─────────────────────────────────────────────────────────────────────────────
# BRANCHES
# ─────────────────────────────────────────────────────────────────────────────

class BranchRecord(BaseModel):
    """A branch, office or factory owned by a company."""
    company_id: str
    name: str
    type: BranchType = BranchType.OTHER
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    prefecture: Optional[str] = None
    city: Optional[str] = None
    address_detail: Optional[str] = None
    employees: Optional[int] = None
    business_hours: Optional[str] = None
    notes: Optional[str] = None

    @property
    def importance(self) -> int:
        return self.type.importance

    @property
    def full_address(self) -> str:
        return "".join(part for part in (self.prefecture, self.city, self.address_detail) if part)


# ─────────────────────────────────────────────────────────────────────────────
# SEARCH
# ─────────────────────────────────────────────────────────────────────────────

class SearchHit(BaseModel):
    """One search-provider result."""
    title: str = ""
    url: str = ""
    content: str = ""
    score: float = 0.0
    is_official: bool = False
    published_date: Optional[str] = None

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(1.0, score))


class SearchValidation(BaseModel):
    """Relevance verdict for a bundle of hits."""
    is_valid: bool
    confidence: float = Field(ge=0.0, le=1.0)
    relevant_count: int = 0
    total_count: int = 0
    low_relevance: bool = False


class SearchBundle(BaseModel):
    """All hits gathered for one company, plus their validation."""
    company_name: str
    queries: list[str] = Field(default_factory=list)
    hits: list[SearchHit] = Field(default_factory=list)
    validation: SearchValidation


# ─────────────────────────────────────────────────────────────────────────────
# EXTRACTION
# ─────────────────────────────────────────────────────────────────────────────

class ExtractionResult(BaseModel):
    """
    Structured fields decoded from the extraction response.

    Only built on success: failures are raised as NoResponse /
    UnparseableResponse, so an instance is never partially valid.
    `data` holds every extractable company field (None when unknown).
    """
    data: dict[str, Any]
    branches: list[dict[str, Any]] = Field(default_factory=list)
    source_urls: list[str] = Field(default_factory=list)
    official_site_url: Optional[str] = None
    primary_source_url: Optional[str] = None
    parse_tier: ParseTier
    provider_score: Optional[Any] = None  # raw, validated by the scorer


# ─────────────────────────────────────────────────────────────────────────────
# RESEARCH & BATCH
# ─────────────────────────────────────────────────────────────────────────────

class QueueEntry(BaseModel):
    """A company waiting in (or done with) the processing queue."""
    entry_id: str
    name: str
    phone: Optional[str] = None
    company_id: Optional[str] = None  # assigned on first research, reused by re-runs
    status: ProcessingStatus = ProcessingStatus.PENDING
    processed_at: Optional[datetime] = None
    error_message: Optional[str] = None


class ResearchResult(BaseModel):
    """Outcome of researching one company. Exactly one of company/error is set."""
    success: bool
    company: Optional[Company] = None
    branches: list[BranchRecord] = Field(default_factory=list)
    error: Optional[ErrorRecord] = None
    validation: Optional[SearchValidation] = None
    parse_tier: Optional[ParseTier] = None
    duration_seconds: float = 0.0


class EntityOutcome(BaseModel):
    """What happened to one queue entry during a batch run."""
    entry_id: str
    name: str
    status: ProcessingStatus
    company_id: Optional[str] = None
    reliability_score: Optional[int] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None


class BatchReport(BaseModel):
    """Aggregate statistics for one batch run; also the persisted summary."""
    batch_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    total: int = 0
    processed: int = 0
    successful: int = 0
    errors: int = 0
    skipped: int = 0
    stopped: bool = False
    status: BatchStatus = BatchStatus.SUCCESS
    outcomes: list[EntityOutcome] = Field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Percentage of processed companies that succeeded."""
        if self.processed == 0:
            return 0.0
        return round(self.successful / self.processed * 100, 1)

    def summary_lines(self) -> list[str]:
        return [
            f"Batch ID:     {self.batch_id}",
            f"Status:       {self.status.value}",
            f"Total:        {self.total}",
            f"Processed:    {self.processed}",
            f"Successful:   {self.successful}",
            f"Errors:       {self.errors}",
            f"Skipped:      {self.skipped}",
            f"Success rate: {self.success_rate}%",
            f"Duration:     {self.duration_seconds:.1f}s",
        ]
