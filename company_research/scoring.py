"""
Reliability Scoring

    score = 50                                    base
          + round(confidence * 25)                only if the search was valid
          + 15                                    extraction succeeded
          + round(filled core fields / 8 * 10)    completeness
    clamped to 0-100

A score proposed by the extraction model overrides the computed one when
it is a number within 0-100. Anything else is discarded and logged.
"""

import logging
import math
from typing import Any, Optional

from .config import SCORING, ScoringConfig
from .models import SearchValidation

logger = logging.getLogger(__name__)

CORE_FIELDS = (
    "name", "phone", "industry_large", "employees",
    "established_year", "capital", "prefecture", "city",
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_provider_score(value: Any) -> Optional[float]:
    """The provider's score as a number, or None if it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    return None if math.isnan(number) else number


class ReliabilityScorer:
    """
    Computes a company's 0-100 reliability score.

    Args:
        config: Weights and bounds.
    """

    def __init__(self, config: ScoringConfig = SCORING):
        self.config = config

    def clamp(self, score: float) -> int:
        return max(self.config.min_score, min(self.config.max_score, round_half_up(score)))

    def completeness(self, extracted: dict[str, Any]) -> float:
        """Fraction of the core fields holding a value."""
        filled = sum(1 for name in CORE_FIELDS if extracted.get(name) not in (None, ""))
        return filled / len(CORE_FIELDS)

    def score(
        self,
        extracted: dict[str, Any],
        validation: Optional[SearchValidation],
        extraction_succeeded: bool,
    ) -> int:
        """Formula score; the provider's own score plays no part here."""
        total = self.config.base_score
        if validation is not None and validation.is_valid:
            total += round_half_up(validation.confidence * self.config.search_weight)
        if extraction_succeeded:
            total += self.config.extraction_bonus
        total += round_half_up(self.completeness(extracted) * self.config.completeness_weight)
        return self.clamp(total)

    def reconcile(self, computed: int, provider_score: Any) -> int:
        """
        The provider's score when it is a number in range, else `computed`.
        """
        if provider_score is None:
            return computed
        number = parse_provider_score(provider_score)
        if number is None or not (self.config.min_score <= number <= self.config.max_score):
            logger.warning(
                "Discarding provider reliability score %r (not a number in %d-%d); using %d",
                provider_score, self.config.min_score, self.config.max_score, computed,
            )
            return computed
        return self.clamp(number)

    def final_score(
        self,
        extracted: dict[str, Any],
        validation: Optional[SearchValidation],
        extraction_succeeded: bool,
        provider_score: Any = None,
    ) -> int:
        return self.reconcile(self.score(extracted, validation, extraction_succeeded), provider_score)
