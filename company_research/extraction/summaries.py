"""
News & Recruitment Summaries

Optional enrichment after the main extraction: summarize the latest news
and the hiring activity of a company from a few topic-search hits.

Each summary ends with a reference block listing up to three source URLs,
official-site URLs first and marked [official]. When the model reply has
no usable summary, the first hit's title is used instead.
"""

import logging
from typing import Optional

from ..config import EXTRACTION, ExtractionConfig
from ..errors import UnparseableResponse
from ..interfaces import ExtractionProvider
from ..models import SearchHit
from ..normalize import clean_text
from ..search.context import build_summary_context
from .parser import parse_fenced, parse_json
from .prompts import NEWS_PROMPT_FILE, RECRUITMENT_PROMPT_FILE, load_prompt

logger = logging.getLogger(__name__)

REFERENCE_HEADER = "Reference URLs:"
MAX_REFERENCE_URLS = 3


def reference_block(hits: list[SearchHit], limit: int = MAX_REFERENCE_URLS) -> str:
    """'Reference URLs:' plus one line per URL, official ones first."""
    ordered = sorted((hit for hit in hits if hit.url), key=lambda hit: not hit.is_official)
    lines = []
    seen = set()
    for hit in ordered:
        if hit.url in seen:
            continue
        seen.add(hit.url)
        lines.append(f"- [official] {hit.url}" if hit.is_official else f"- {hit.url}")
        if len(lines) >= limit:
            break
    if not lines:
        return ""
    return "\n".join([REFERENCE_HEADER, *lines])


def _summary_text(raw: str) -> Optional[str]:
    obj = parse_json(raw) or parse_fenced(raw)
    if obj is None:
        raise UnparseableResponse("could not parse summary response as JSON")
    return clean_text(obj.get("summary"))


class SummaryGenerator:
    """
    News and recruitment summaries for a company.

    Args:
        provider: Chat-completion backend.
        config: Summary token budget, temperature and hit limit.
    """

    def __init__(self, provider: ExtractionProvider, config: ExtractionConfig = EXTRACTION):
        self.provider = provider
        self.config = config

    def summarize_news(self, company_name: str, hits: list[SearchHit]) -> Optional[str]:
        return self._summarize(company_name, hits, NEWS_PROMPT_FILE, "news")

    def summarize_recruitment(self, company_name: str, hits: list[SearchHit]) -> Optional[str]:
        return self._summarize(company_name, hits, RECRUITMENT_PROMPT_FILE, "recruitment")

    def _summarize(self, company_name: str, hits: list[SearchHit], prompt_file: str, label: str) -> Optional[str]:
        """
        Summary text with its reference block, or None without hits.

        Provider errors propagate; an unusable reply falls back to the
        first hit's title.
        """
        hits = [hit for hit in hits if hit.title or hit.content][: self.config.summary_hit_limit]
        if not hits:
            logger.info("No %s sources for %r", label, company_name)
            return None

        system_prompt, user_template = load_prompt(prompt_file)
        raw = self.provider.complete(
            system_prompt,
            user_template.format(company_name=company_name, context=build_summary_context(hits)),
            max_tokens=self.config.summary_max_tokens,
            temperature=self.config.summary_temperature,
            json_mode=True,
        )

        try:
            summary = _summary_text(raw)
        except UnparseableResponse:
            logger.warning("Unusable %s summary reply for %r, using first title", label, company_name)
            summary = None
        summary = summary or hits[0].title or f"{label.capitalize()} information found"

        references = reference_block(hits)
        return f"{summary}\n\n{references}" if references else summary
