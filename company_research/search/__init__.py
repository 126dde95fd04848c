"""
Search

Components:
    1. tavily.py     - Tavily SearchProvider over the HttpGateway
    2. aggregator.py - Per-company queries, official-site flags, relevance validation
    3. context.py    - Bounded, official-first context for the extraction prompt
"""

from .aggregator import SearchAggregator, build_company_query, is_official_url, validate_hits
from .context import ContextBuilder, build_summary_context
from .tavily import TavilySearchProvider

__all__ = [
    "SearchAggregator", "build_company_query", "is_official_url", "validate_hits",
    "ContextBuilder", "build_summary_context",
    "TavilySearchProvider",
]
