"""
Context Builder

Turns search hits into the text block sent to the extraction model.

    1. Official-site hits first (stable sort, otherwise provider order)
    2. Each hit's content cut to max_hit_chars
    3. Blocks appended until the next one would push the total past
       max_context_chars; the rest are dropped whole

Pure and deterministic: the same hits always give the same string.
"""

import logging

from ..config import EXTRACTION, ExtractionConfig
from ..models import SearchHit

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = "\n\n"
TRUNCATION_MARKER = "\n...[truncated]"


def truncate(text: str, limit: int) -> str:
    """Cut to at most `limit` characters, marking the cut."""
    if len(text) <= limit:
        return text
    keep = max(0, limit - len(TRUNCATION_MARKER))
    return text[:keep] + TRUNCATION_MARKER


def format_block(index: int, hit: SearchHit, max_hit_chars: int) -> str:
    label = " [official site]" if hit.is_official else ""
    lines = [
        f"=== Source {index}{label} ===",
        f"Title: {hit.title}",
        f"URL: {hit.url}",
    ]
    if hit.published_date:
        lines.append(f"Published: {hit.published_date}")
    lines.append(f"Content:\n{truncate(hit.content, max_hit_chars)}")
    return "\n".join(lines)


class ContextBuilder:
    """
    Bounded, official-first context for the extraction prompt.

    Args:
        max_context_chars: Global character budget for the joined context.
        max_hit_chars: Per-hit content cap applied before budgeting.
    """

    def __init__(
        self,
        max_context_chars: int = EXTRACTION.max_context_chars,
        max_hit_chars: int = EXTRACTION.max_hit_chars,
    ):
        self.max_context_chars = max_context_chars
        self.max_hit_chars = max_hit_chars

    @classmethod
    def from_config(cls, config: ExtractionConfig) -> "ContextBuilder":
        return cls(config.max_context_chars, config.max_hit_chars)

    def build(self, hits: list[SearchHit]) -> str:
        """
        Join formatted hit blocks within the character budget.

        Returns:
            The context string, or "" when there are no hits.
        """
        if not hits:
            return ""

        ordered = sorted(hits, key=lambda hit: not hit.is_official)
        blocks: list[str] = []
        length = 0

        for index, hit in enumerate(ordered, 1):
            block = format_block(index, hit, self.max_hit_chars)
            added = len(block) + (len(BLOCK_SEPARATOR) if blocks else 0)
            if length + added > self.max_context_chars:
                logger.debug(
                    "Context budget reached at source %d/%d (%d chars)",
                    index, len(ordered), length,
                )
                break
            blocks.append(block)
            length += added

        return BLOCK_SEPARATOR.join(blocks)


def build_summary_context(hits: list[SearchHit], limit: int = 3, max_chars: int = 1500) -> str:
    """Short labeled context for the news/recruitment summaries."""
    ordered = sorted(hits, key=lambda hit: not hit.is_official)[:limit]
    return BLOCK_SEPARATOR.join(
        format_block(index, hit, max_chars) for index, hit in enumerate(ordered, 1)
    )
