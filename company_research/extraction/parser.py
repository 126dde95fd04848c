"""
Extraction Response Parser

Decodes the model's reply with three strategies, first success wins:

    Tier 1  the whole reply is a JSON object
    Tier 2  a JSON object inside a ``` fence, else the outermost {...} span
    Tier 3  "label: value" lines scraped for known field labels

Keys from any tier are mapped onto Company field names (camelCase,
snake_case and Japanese labels are all accepted). A tier-3 result never
carries a reliability score: free text is not trusted for it.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import UnparseableResponse
from ..models import ParseTier
from ..normalize import clean_text

logger = logging.getLogger(__name__)


# Company field -> labels the model may use for it
FIELD_LABELS: dict[str, tuple[str, ...]] = {
    "name": ("companyName", "name", "企業名", "会社名"),
    "official_name": ("officialName", "正式名称", "正式企業名", "商号"),
    "phone": ("phone", "phoneNumber", "tel", "telephone", "電話番号", "代表電話"),
    "industry_large": ("industryLarge", "industry", "業種大分類", "業種"),
    "industry_medium": ("industryMedium", "業種中分類"),
    "employees": ("employees", "employeeCount", "numberOfEmployees", "従業員数"),
    "established_year": ("establishedYear", "foundedYear", "founded", "設立年", "設立"),
    "capital": ("capital", "資本金"),
    "listing_status": ("listingStatus", "上場区分", "上場"),
    "postal_code": ("postalCode", "zipCode", "郵便番号"),
    "prefecture": ("prefecture", "都道府県"),
    "city": ("city", "市区町村"),
    "address_detail": ("addressDetail", "address", "住所詳細", "住所", "所在地"),
    "representative_name": ("representativeName", "representative", "ceo", "代表者名", "代表者"),
    "representative_title": ("representativeTitle", "代表者役職", "役職"),
    "philosophy": ("philosophy", "mission", "企業理念", "理念"),
    "website": ("website", "officialSite", "homepage", "url", "企業URL", "ホームページ"),
    "reliability_score": ("reliabilityScore", "信頼性スコア"),
}

BRANCHES_LABELS = ("branches", "支店情報", "拠点")


def _key(label: str) -> str:
    return re.sub(r"[\s_\-*]", "", label).lower()


_LABEL_LOOKUP: dict[str, str] = {
    _key(label): field_name
    for field_name, labels in FIELD_LABELS.items()
    for label in (field_name, *labels)
}
_BRANCH_KEYS = {_key(label) for label in BRANCHES_LABELS}

_FENCED_JSON = re.compile(r"```(?:json|JSON)?\s*(\{.*?\})\s*```", re.DOTALL)
_LABEL_LINE = re.compile(r"^\s*(?:[-*•]\s*)?[\"']?([^:：\"'\n]{1,40}?)[\"']?\s*[:：]\s*(.+?)\s*$", re.MULTILINE)


@dataclass
class ParsedResponse:
    """Field-name keyed data plus the tier that produced it."""
    data: dict[str, Any]
    branches: list[dict[str, Any]]
    tier: ParseTier


def normalize_keys(raw: dict[str, Any]) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    """
    Map a decoded object's keys onto Company field names.

    Unknown keys are dropped. The first key seen for a field wins.

    Returns:
        (fields, branches) where branches is the raw list of branch dicts.
    """
    fields: dict[str, Any] = {}
    branches: list[dict[str, Any]] = []
    for key, value in raw.items():
        k = _key(str(key))
        if k in _BRANCH_KEYS:
            if isinstance(value, list):
                branches = [b for b in value if isinstance(b, dict)]
            continue
        field_name = _LABEL_LOOKUP.get(k)
        if field_name and field_name not in fields:
            fields[field_name] = value
    return fields, branches


def _load_object(text: str) -> Optional[dict]:
    try:
        obj = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return obj if isinstance(obj, dict) else None


def parse_json(text: str) -> Optional[dict]:
    """Tier 1: the whole response as a JSON object."""
    return _load_object(text.strip())


def parse_fenced(text: str) -> Optional[dict]:
    """Tier 2: a fenced JSON block, else the outermost brace span."""
    for match in _FENCED_JSON.finditer(text):
        obj = _load_object(match.group(1))
        if obj is not None:
            return obj

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return _load_object(text[start:end + 1])
    return None


def scrape_fields(text: str) -> dict[str, Any]:
    """
    Tier 3: known "label: value" lines from free text.

    The reliability score is never scraped.
    """
    fields: dict[str, Any] = {}
    for match in _LABEL_LINE.finditer(text):
        field_name = _LABEL_LOOKUP.get(_key(match.group(1)))
        if not field_name or field_name == "reliability_score" or field_name in fields:
            continue
        value = clean_text(match.group(2))
        if value is not None:
            fields[field_name] = value
    return fields


def parse_response(text: Optional[str]) -> ParsedResponse:
    """
    Decode an extraction reply, trying the three tiers in order.

    Raises:
        UnparseableResponse: No tier produced any known field.
    """
    if not text or not text.strip():
        raise UnparseableResponse("could not parse empty extraction response")

    obj = parse_json(text)
    if obj is not None:
        fields, branches = normalize_keys(obj)
        return ParsedResponse(fields, branches, ParseTier.JSON)

    obj = parse_fenced(text)
    if obj is not None:
        logger.info("Extraction response parsed from embedded JSON (tier 2)")
        fields, branches = normalize_keys(obj)
        return ParsedResponse(fields, branches, ParseTier.FENCED)

    fields = scrape_fields(text)
    if fields:
        logger.warning(
            "Extraction response not JSON; scraped %d labeled fields (tier 3)", len(fields),
        )
        return ParsedResponse(fields, [], ParseTier.SCRAPE)

    raise UnparseableResponse()
