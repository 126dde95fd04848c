"""
Configuration & Constants

All magic numbers, thresholds, and settings live here.
Single source of truth for the research and batch pipeline.

Every config dataclass is frozen. The module-level singletons hold the
defaults; `from_env()` builds an instance with `CR_*` environment
overrides applied (e.g. CR_RATE_LIMIT_DELAY=2.5).
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
import logging
import os

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# PATHS
# ─────────────────────────────────────────────────────────────────────────────

PACKAGE_DIR = Path(__file__).parent
PROJECT_ROOT = PACKAGE_DIR.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "outputs"
LOG_DIR = PROJECT_ROOT / "logs"
CREDENTIALS_DIR = PROJECT_ROOT / "credentials"
PROMPTS_DIR = PACKAGE_DIR / "prompts"

ENV_PREFIX = "CR_"


# ─────────────────────────────────────────────────────────────────────────────
# CREDENTIAL LOADING
# ─────────────────────────────────────────────────────────────────────────────

def _load_credential(filename: str, credentials_dir: Path = CREDENTIALS_DIR) -> str:
    """
    Load an API key from a credential file.

    Falls back to environment variable if file doesn't exist.

    Args:
        filename: Name of the credential file (e.g., 'tavily_api_key.txt')
        credentials_dir: Folder holding credential files.

    Returns:
        The API key string, or empty string if not found.
    """
    cred_path = credentials_dir / filename
    if cred_path.exists():
        content = cred_path.read_text().strip()
        # Skip comment lines and empty lines
        lines = [line.strip() for line in content.split('\n')
                 if line.strip() and not line.strip().startswith('#')]
        if lines:
            return lines[0]

    env_var = filename.replace('_api_key.txt', '').upper() + '_API_KEY'
    return os.getenv(env_var, "")


# ─────────────────────────────────────────────────────────────────────────────
# API KEYS
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class APIKeys:
    """
    API credentials loaded from credentials folder or environment variables.

    Priority:
    1. credentials/<service>_api_key.txt file
    2. Environment variable (TAVILY_API_KEY, OPENAI_API_KEY)
    """
    tavily: str = ""
    openai: str = ""

    def __post_init__(self):
        """Load credentials if not already set."""
        if not self.tavily:
            self.tavily = _load_credential('tavily_api_key.txt')
        if not self.openai:
            self.openai = _load_credential('openai_api_key.txt')

    def validate(self) -> list[str]:
        """Return list of missing API keys."""
        missing = []
        if not self.tavily:
            missing.append("tavily (credentials/tavily_api_key.txt)")
        if not self.openai:
            missing.append("openai (credentials/openai_api_key.txt)")
        return missing

    def status(self) -> dict[str, bool]:
        """Return status of each API key."""
        return {
            "tavily": bool(self.tavily),
            "openai": bool(self.openai),
        }


# ─────────────────────────────────────────────────────────────────────────────
# ENVIRONMENT OVERRIDES
# ─────────────────────────────────────────────────────────────────────────────

def _coerce(raw: str, default):
    """Convert an environment string to the type of the field default."""
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    if isinstance(default, tuple):
        return tuple(part.strip() for part in raw.split(",") if part.strip())
    return raw


class _EnvMixin:
    """Adds `from_env()` to a frozen config dataclass."""

    @classmethod
    def from_env(cls, environ: dict | None = None):
        """
        Build an instance, overriding defaults with CR_<FIELD_NAME> variables.

        Raises:
            ValueError: If a variable cannot be converted to the field type.
        """
        environ = os.environ if environ is None else environ
        defaults = cls()
        overrides = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            try:
                overrides[f.name] = _coerce(raw, getattr(defaults, f.name))
            except ValueError as e:
                raise ValueError(
                    f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}"
                ) from e
        return cls(**overrides)


# ─────────────────────────────────────────────────────────────────────────────
# PROCESSING SETTINGS
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProcessingConfig(_EnvMixin):
    """Settings for HTTP pacing, retries and batch processing."""
    # Pacing: minimum gap between any two outbound requests (seconds)
    rate_limit_delay: float = 1.0

    # Retry policy (total attempts, including the first)
    max_attempts: int = 3
    retry_delay_base: float = 1.0  # Exponential backoff base

    # Timeouts (seconds)
    search_timeout: float = 30.0
    extraction_timeout: float = 60.0

    # Batch
    batch_size: int = 8
    processing_delay: float = 2.0  # Gap between companies in a batch

    # Response cache TTLs (seconds)
    cache_ttl_short: int = 300
    cache_ttl_medium: int = 3600
    cache_ttl_long: int = 86400
    enable_cache: bool = True


# ─────────────────────────────────────────────────────────────────────────────
# SEARCH SETTINGS
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SearchConfig(_EnvMixin):
    """Settings for query building and search validation."""
    base_url: str = "https://api.tavily.com"
    max_results: int = 10
    phone_max_results: int = 5
    topic_max_results: int = 5
    news_days: int = 180

    # Relevance weights for a name match
    title_match_weight: float = 0.8
    content_match_weight: float = 0.6

    # Hits present but none mention the company: keep going at this confidence
    low_relevance_confidence_floor: float = 0.3

    # Domains always treated as the company's own site
    official_domains: tuple = field(default_factory=tuple)


# ─────────────────────────────────────────────────────────────────────────────
# EXTRACTION SETTINGS
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExtractionConfig(_EnvMixin):
    """Settings for the LLM extraction call and its context budget."""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    max_response_tokens: int = 3000
    temperature: float = 0.1
    context_window_tokens: int = 128000
    chars_per_token: float = 1.3

    # Context budget (characters)
    max_context_chars: int = 80000
    max_hit_chars: int = 8000

    # Provenance
    max_source_urls: int = 5

    # Optional enrichment
    enable_news_summary: bool = True
    enable_recruitment_summary: bool = True
    summary_max_tokens: int = 1000
    summary_temperature: float = 0.2
    summary_hit_limit: int = 3


# ─────────────────────────────────────────────────────────────────────────────
# SCORING SETTINGS
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScoringConfig(_EnvMixin):
    """
    Reliability score composition.

    50 base + up to 25 for search confidence + 15 for a successful
    extraction + up to 10 for core-field completeness, clamped to 0-100.
    """
    base_score: int = 50
    search_weight: int = 25
    extraction_bonus: int = 15
    completeness_weight: int = 10
    min_score: int = 0
    max_score: int = 100


# ─────────────────────────────────────────────────────────────────────────────
# DEFAULT INSTANCES
# ─────────────────────────────────────────────────────────────────────────────

PROCESSING = ProcessingConfig()
SEARCH = SearchConfig()
EXTRACTION = ExtractionConfig()
SCORING = ScoringConfig()


def load_api_keys() -> APIKeys:
    """Load API keys and report any that are missing."""
    keys = APIKeys()
    missing = keys.validate()
    if missing:
        logger.warning(
            "Missing API keys: %s. Set them in credentials/ or export as environment variables.",
            ", ".join(missing),
        )
    return keys
