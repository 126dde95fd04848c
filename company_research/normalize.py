"""
Normalization helpers

Company-name normalization for relevance matching, phone formatting,
area-code location inference and lenient number parsing for values the
extraction model returns as text ("1,200名", "2005年", "約300人").
"""

import re
from typing import Any, Optional


# ─────────────────────────────────────────────────────────────────────────────
# COMPANY NAMES
# ─────────────────────────────────────────────────────────────────────────────

# Japanese legal-entity markers, removed as substrings (no word boundaries in Japanese)
JP_CORP_MARKERS = [
    "特定非営利活動法人", "一般社団法人", "一般財団法人", "公益社団法人", "公益財団法人",
    "社会福祉法人", "医療法人", "学校法人", "NPO法人",
    "株式会社", "有限会社", "合同会社", "合資会社", "合名会社",
    "（株）", "(株)", "㈱", "（有）", "(有)", "㈲",
]

CORP_SUFFIXES = [
    "llc", "inc", "incorporated", "corp", "corporation", "co", "company",
    "ltd", "limited", "kk", "plc", "gmbh", "lp", "llp", "bv", "ag", "nv",
    "sa", "pte", "holdings",
]

EMPTY_MARKERS = {"", "null", "none", "n/a", "na", "-", "不明", "なし", "unknown", "未定"}


def normalize_text(text: str) -> str:
    """Lowercase, punctuation to spaces, collapsed whitespace."""
    if not text:
        return ""
    s = text.lower()
    s = s.replace("&", " and ")
    s = re.sub(r"[^\w\s]", " ", s)
    return " ".join(s.split())


def normalize_company_name(name: str) -> str:
    """
    Normalized name with legal-entity suffixes stripped.

    "Acme Corp." -> "acme", "株式会社トヨタ" -> "トヨタ". Falls back to the
    plain normalized text when stripping would leave nothing.
    """
    if not name:
        return ""
    stripped = name
    for marker in JP_CORP_MARKERS:
        stripped = stripped.replace(marker, " ")
    tokens = normalize_text(stripped).split()
    filtered = [t for t in tokens if t not in CORP_SUFFIXES]
    return " ".join(filtered) or normalize_text(name)


def name_slug(name: str) -> str:
    """ASCII letters/digits of the normalized name, for domain matching."""
    return re.sub(r"[^a-z0-9]", "", normalize_company_name(name))


# ─────────────────────────────────────────────────────────────────────────────
# PHONE NUMBERS
# ─────────────────────────────────────────────────────────────────────────────

# Area code -> (prefecture, city); matched longest code first
AREA_CODE_LOCATIONS = {
    "011": ("北海道", "札幌市"),
    "022": ("宮城県", "仙台市"),
    "045": ("神奈川県", "横浜市"),
    "052": ("愛知県", "名古屋市"),
    "075": ("京都府", "京都市"),
    "078": ("兵庫県", "神戸市"),
    "082": ("広島県", "広島市"),
    "092": ("福岡県", "福岡市"),
    "03": ("東京都", None),
    "06": ("大阪府", None),
}


def format_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Hyphenate Japanese landline numbers.

    10 digits -> 0X-XXXX-XXXX, 11 digits -> 0XX-XXXX-XXXX. Anything else
    is returned stripped but otherwise unchanged.
    """
    if phone is None:
        return None
    raw = str(phone).strip()
    digits = re.sub(r"[-\s()（）]", "", raw)
    if re.fullmatch(r"0\d{9}", digits):
        return f"{digits[:2]}-{digits[2:6]}-{digits[6:]}"
    if re.fullmatch(r"0\d{10}", digits):
        return f"{digits[:3]}-{digits[3:7]}-{digits[7:]}"
    return raw or None


def infer_location_from_phone(phone: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    (prefecture, city) for major metropolitan area codes.

    Returns (None, None) when the number does not start with a known code.
    """
    if not phone:
        return None, None
    digits = re.sub(r"\D", "", str(phone))
    for code in sorted(AREA_CODE_LOCATIONS, key=len, reverse=True):
        if digits.startswith(code):
            return AREA_CODE_LOCATIONS[code]
    return None, None


# ─────────────────────────────────────────────────────────────────────────────
# VALUES
# ─────────────────────────────────────────────────────────────────────────────

def clean_text(value: Any) -> Optional[str]:
    """Strip a scalar to text; empty and placeholder values become None."""
    if value is None:
        return None
    if isinstance(value, (list, dict)):
        return None
    text = str(value).strip().rstrip(",").strip().strip('"').strip("'").strip()
    if text.lower() in EMPTY_MARKERS:
        return None
    return text


def coerce_int(value: Any) -> Optional[int]:
    """
    Parse counts like 120, "1,200名", "約300人", "16192.0".

    Returns None when no number is present.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else None  # NaN check
    match = re.search(r"\d[\d,]*(?:\.\d+)?", str(value))
    if not match:
        return None
    return int(float(match.group(0).replace(",", "")))


def coerce_year(value: Any) -> Optional[int]:
    """Four-digit year from 2005, "2005年", "2005-04-01". None otherwise."""
    if value is None or isinstance(value, bool):
        return None
    match = re.search(r"(1[6-9]\d{2}|20\d{2})", str(value))
    return int(match.group(1)) if match else None
