"""
Extraction

Components:
    1. openai_client.py - OpenAI chat completions ExtractionProvider
    2. prompts.py       - Prompt file loading
    3. parser.py        - Three-tier response parsing
    4. extractor.py     - Token-safe extraction, provenance, branch records
    5. summaries.py     - News and recruitment summaries
"""

from .extractor import InformationExtractor, normalize_fields, provenance
from .openai_client import OpenAIExtractionProvider
from .parser import ParsedResponse, parse_response
from .summaries import SummaryGenerator, reference_block

__all__ = [
    "InformationExtractor", "normalize_fields", "provenance",
    "OpenAIExtractionProvider",
    "ParsedResponse", "parse_response",
    "SummaryGenerator", "reference_block",
]
