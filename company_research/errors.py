"""
Errors & Error Classification

Exception hierarchy raised by the pipeline components, plus the
ErrorClassifier that turns any raised exception into a typed,
severity-ranked ErrorRecord for reporting and retry decisions.

Classification rules are checked in a fixed order; the first match wins:

    1. PERMISSION  permission / unauthorized / forbidden / auth / api key, HTTP 401/403
    2. API         api / http / rate limit, HTTP 400-599
    3. NETWORK     network / connection / dns / socket
    4. TIMEOUT     timeout / timed out / exceeded
    5. DATA        parse / json / format / decode
    6. VALIDATION  validation / invalid / required / missing
    7. SYSTEM      anything else

Terms are matched on word boundaries, so "capital" never counts as
"api" and "information" never counts as "format".

Usage:
    classifier = ErrorClassifier(clock)
    record = classifier.classify(exc, {"company_name": "Acme", "batch_size": 8})
    if record.retryable:
        ...
"""

import logging
import random
import re
import string
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Container, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# EXCEPTIONS
# ─────────────────────────────────────────────────────────────────────────────

class ResearchError(Exception):
    """Base class for every error raised by the research pipeline."""


class ConfigurationError(ResearchError):
    """Missing or invalid settings detected at construction time."""


class ApiError(ResearchError):
    """A provider answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str = "", url: str = ""):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")


class ParseError(ResearchError):
    """A provider answered 2xx but the body could not be decoded."""


class NetworkError(ResearchError):
    """Connection-level failure after all attempts were used."""


class RequestTimeout(ResearchError):
    """Request timeout after all attempts were used."""


class NoSearchResults(ResearchError):
    """The search bundle for a company contained zero hits."""

    def __init__(self, message: str = "no search results returned; search bundle is invalid"):
        super().__init__(message)


class NoContext(ResearchError):
    """The context builder produced an empty string."""

    def __init__(self, message: str = "required search context is missing"):
        super().__init__(message)


class NoResponse(ResearchError):
    """The extraction provider returned no choices."""

    def __init__(self, message: str = "no choices in completion; response format unusable"):
        super().__init__(message)


class UnparseableResponse(ResearchError):
    """All three parse tiers failed on the extraction response."""

    def __init__(self, message: str = "could not parse extraction response as JSON"):
        super().__init__(message)


class InvalidInput(ResearchError):
    """The research request itself is unusable (e.g. blank company name)."""

    def __init__(self, message: str = "company name is required"):
        super().__init__(message)


class StoreWriteError(ResearchError):
    """The entity store refused a write."""


class AlreadyRunning(ResearchError):
    """A batch run was requested while another one is active."""

    def __init__(self, message: str = "batch processing is already running"):
        super().__init__(message)


# ─────────────────────────────────────────────────────────────────────────────
# ERROR TYPES & SEVERITY
# ─────────────────────────────────────────────────────────────────────────────

class ErrorType(str, Enum):
    """Failure category assigned by the classifier."""
    PERMISSION = "PERMISSION"
    API = "API"
    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    DATA = "DATA"
    VALIDATION = "VALIDATION"
    SYSTEM = "SYSTEM"


class Severity(str, Enum):
    """How urgently a failure needs attention."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"

    @property
    def log_level(self) -> int:
        return {
            Severity.CRITICAL: logging.ERROR,
            Severity.HIGH: logging.ERROR,
            Severity.MEDIUM: logging.WARNING,
            Severity.LOW: logging.INFO,
            Severity.INFO: logging.DEBUG,
        }[self]


RETRYABLE_TYPES = frozenset({ErrorType.API, ErrorType.NETWORK, ErrorType.TIMEOUT})

# Severity thresholds that trigger a critical-error alert
CRITICAL_ALERT_THRESHOLD = 5
HIGH_ALERT_THRESHOLD = 10

# Batches larger than this make network trouble a HIGH severity problem
LARGE_BATCH_SIZE = 10


SOLUTIONS: dict[ErrorType, dict[str, str]] = {
    ErrorType.API: {
        "immediate": "Check the API key and retry the company",
        "preventive": "Monitor API quotas and keep a spare key",
        "contact": "API provider support",
    },
    ErrorType.NETWORK: {
        "immediate": "Check network connectivity and retry",
        "preventive": "Add network monitoring",
        "contact": "Network administrator",
    },
    ErrorType.TIMEOUT: {
        "immediate": "Reduce the batch size or raise the request timeout",
        "preventive": "Watch request durations",
        "contact": "System administrator",
    },
    ErrorType.PERMISSION: {
        "immediate": "Verify credentials and access rights",
        "preventive": "Review credentials periodically",
        "contact": "System administrator",
    },
    ErrorType.DATA: {
        "immediate": "Inspect the raw response and input row",
        "preventive": "Tighten response format instructions",
        "contact": "Data owner",
    },
    ErrorType.VALIDATION: {
        "immediate": "Correct the input row",
        "preventive": "Validate input before queueing",
        "contact": "User support",
    },
}

DEFAULT_SOLUTION = {
    "immediate": "Read the detailed log and restart the run",
    "preventive": "Add system monitoring",
    "contact": "System administrator",
}


# ─────────────────────────────────────────────────────────────────────────────
# ERROR RECORD
# ─────────────────────────────────────────────────────────────────────────────

class ErrorRecord(BaseModel):
    """
    A classified failure. Created once at the point of classification
    and never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    type: ErrorType
    severity: Severity
    retryable: bool
    message: str
    error_name: str
    code: Optional[int] = None
    context: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


# ─────────────────────────────────────────────────────────────────────────────
# CLASSIFIER
# ─────────────────────────────────────────────────────────────────────────────

_RULES: list[tuple[ErrorType, re.Pattern, Optional[Container[int]]]] = [
    (
        ErrorType.PERMISSION,
        re.compile(r"\b(permissions?|unauthori[sz]ed|forbidden|auth|authentication|"
                   r"authorization|access denied|api key)\b"),
        frozenset({401, 403}),
    ),
    (
        ErrorType.API,
        re.compile(r"\b(api|http|rate limit)\b"),
        range(400, 600),
    ),
    (
        ErrorType.NETWORK,
        re.compile(r"\b(network\w*|connect\w*|dns|socket|unreachable)\b"),
        None,
    ),
    (
        ErrorType.TIMEOUT,
        re.compile(r"timeout|timed out|time out|\bexceeded\b"),
        None,
    ),
    (
        ErrorType.DATA,
        re.compile(r"\b(parse\w*|parsing|json\w*|format|decode\w*)\b"),
        None,
    ),
    (
        ErrorType.VALIDATION,
        re.compile(r"\b(validation\w*|invalid|required|missing)\b"),
        None,
    ),
]


def _status_code(error: BaseException, context: dict[str, Any]) -> Optional[int]:
    code = getattr(error, "status_code", None)
    if code is None:
        code = context.get("status_code")
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def _error_id(now: float) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"ERR_{int(now * 1000)}_{suffix}"


class ErrorClassifier:
    """
    Classifies exceptions into ErrorRecords and keeps running counts.

    One instance per process, injected into both orchestrators so that
    the counts cover the whole run.

    Args:
        clock: Time source used for record ids and timestamps.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._by_type: dict[str, int] = {}
        self._by_severity: dict[str, int] = {}
        self._total = 0

    def classify(self, error: BaseException, context: Optional[dict[str, Any]] = None) -> ErrorRecord:
        """
        Turn a raised exception into an ErrorRecord, log it and count it.

        Args:
            error: The exception to classify.
            context: Free-form details (company_name, stage, batch_size,
                critical_data, status_code). Stored on the record.

        Returns:
            The new ErrorRecord.
        """
        context = dict(context or {})
        code = _status_code(error, context)
        error_type = self.classify_type(error, code)
        severity = self.severity_for(error_type, code, context)
        now = self.clock.now()

        record = ErrorRecord(
            id=_error_id(now),
            type=error_type,
            severity=severity,
            retryable=error_type in RETRYABLE_TYPES,
            message=str(error) or type(error).__name__,
            error_name=type(error).__name__,
            code=code,
            context=context,
            timestamp=datetime.fromtimestamp(now, tz=timezone.utc),
        )

        self._count(record)
        logger.log(
            severity.log_level,
            "[%s] %s/%s: %s (%s)",
            record.id, error_type.value, severity.value, record.message,
            ", ".join(f"{k}={v}" for k, v in context.items()) or "no context",
        )
        return record

    @staticmethod
    def classify_type(error: BaseException, code: Optional[int] = None) -> ErrorType:
        """Apply the ordered rules to an exception's name, message and code."""
        text = f"{type(error).__name__} {error}".lower()
        for error_type, pattern, codes in _RULES:
            if codes is not None and code is not None and code in codes:
                return error_type
            if pattern.search(text):
                return error_type
        return ErrorType.SYSTEM

    @staticmethod
    def severity_for(error_type: ErrorType, code: Optional[int], context: dict[str, Any]) -> Severity:
        """Severity from type plus the batch/data hints in context."""
        if error_type is ErrorType.PERMISSION:
            return Severity.CRITICAL
        if error_type is ErrorType.API:
            return Severity.MEDIUM if code == 429 else Severity.HIGH
        if error_type in (ErrorType.NETWORK, ErrorType.TIMEOUT):
            batch_size = context.get("batch_size") or 0
            return Severity.HIGH if batch_size > LARGE_BATCH_SIZE else Severity.MEDIUM
        if error_type is ErrorType.DATA:
            return Severity.HIGH if context.get("critical_data") else Severity.MEDIUM
        if error_type is ErrorType.VALIDATION:
            return Severity.LOW
        return Severity.MEDIUM

    @staticmethod
    def solutions_for(error_type: ErrorType) -> dict[str, str]:
        """Remediation hints for an error type."""
        return SOLUTIONS.get(error_type, DEFAULT_SOLUTION)

    # ─────────────────────────────────────────────────────────────────────────
    # STATISTICS
    # ─────────────────────────────────────────────────────────────────────────

    def _count(self, record: ErrorRecord) -> None:
        self._total += 1
        self._by_type[record.type.value] = self._by_type.get(record.type.value, 0) + 1
        self._by_severity[record.severity.value] = self._by_severity.get(record.severity.value, 0) + 1

    @property
    def counts_by_type(self) -> dict[str, int]:
        return dict(self._by_type)

    @property
    def counts_by_severity(self) -> dict[str, int]:
        return dict(self._by_severity)

    def stats(self) -> dict:
        """Return error statistics for monitoring."""
        return {
            "total": self._total,
            "by_type": self.counts_by_type,
            "by_severity": self.counts_by_severity,
        }

    def reset_stats(self) -> None:
        self._by_type.clear()
        self._by_severity.clear()
        self._total = 0

    def critical_alerts(self) -> list[str]:
        """
        Check the running counts against the alert thresholds.

        Returns:
            One message per exceeded threshold (empty when all is well).
        """
        alerts = []
        critical = self._by_severity.get(Severity.CRITICAL.value, 0)
        high = self._by_severity.get(Severity.HIGH.value, 0)
        if critical >= CRITICAL_ALERT_THRESHOLD:
            alerts.append(f"{critical} critical errors recorded (threshold {CRITICAL_ALERT_THRESHOLD})")
        if high >= HIGH_ALERT_THRESHOLD:
            alerts.append(f"{high} high-severity errors recorded (threshold {HIGH_ALERT_THRESHOLD})")
        return alerts

    def __repr__(self) -> str:
        return f"ErrorClassifier(total={self._total}, by_type={self._by_type})"
