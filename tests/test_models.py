from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from company_research.config import APIKeys, ProcessingConfig, SearchConfig, _load_credential
from company_research.models import (
    BatchReport,
    BatchStatus,
    BranchRecord,
    BranchType,
    Company,
    ProcessingResult,
    ProcessingStatus,
    SearchHit,
    SearchValidation,
)
from company_research.normalize import (
    clean_text,
    coerce_int,
    coerce_year,
    format_phone_number,
    infer_location_from_phone,
    name_slug,
    normalize_company_name,
)

NOW = datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# MODELS
# ─────────────────────────────────────────────────────────────────────────────

def test_company_id_format():
    assert Company.generate_id("Acme Corporation Japan", 1_700_000_000.5) == "COMP_acmecorpor_1700000000500"
    assert Company.generate_id("株式会社テスト", 1.0) == "COMP_unknown_1000"


def test_company_score_and_sources_are_normalized():
    company = Company(
        id="C1", name="  Acme ", reliability_score=140.4,
        source_urls=["https://a", "https://a", "", "https://b", "https://c", "https://d", "https://e", "https://f"],
    )
    assert company.name == "Acme"
    assert company.reliability_score == 100
    assert company.source_urls == ["https://a", "https://b", "https://c", "https://d", "https://e"]

    company.reliability_score = -5
    assert company.reliability_score == 0


def test_company_helpers():
    company = Company(
        id="C1", name="Acme", official_name="Acme株式会社", postal_code="100-0001",
        prefecture="東京都", city="千代田区", address_detail="1-1",
        representative_title="代表取締役", representative_name="山田 太郎",
    )
    assert company.is_valid()
    assert company.display_name == "Acme株式会社"
    assert company.full_address == "〒100-0001 東京都千代田区1-1"
    assert company.representative_info == "代表取締役 山田 太郎"
    assert 0 < company.completion_percentage() < 100
    assert not Company(name="Acme").is_valid()


def test_company_marks():
    company = Company(id="C1", name="Acme")
    assert company.processing_result is ProcessingResult.INITIALIZED
    company.mark_error("boom", NOW)
    assert company.processing_result is ProcessingResult.ERROR
    company.mark_success(NOW)
    assert company.processing_result is ProcessingResult.SUCCESS
    assert company.error_message is None
    assert company.processed_at == NOW


@pytest.mark.parametrize("label, expected", [
    ("本社", BranchType.HEAD_OFFICE),
    ("本社工場", BranchType.HEAD_OFFICE),
    ("第二工場", BranchType.FACTORY),
    ("大阪支社", BranchType.BRANCH),
    ("札幌営業所", BranchType.OFFICE),
    ("branch", BranchType.BRANCH),
    ("Distribution center", BranchType.OTHER),
    (None, BranchType.OTHER),
])
def test_branch_type_from_label(label, expected):
    assert BranchType.from_label(label) is expected


def test_branch_importance_order():
    ranks = [t.importance for t in (BranchType.HEAD_OFFICE, BranchType.FACTORY, BranchType.BRANCH,
                                    BranchType.OFFICE, BranchType.OTHER)]
    assert ranks == sorted(ranks, reverse=True)
    assert BranchRecord(company_id="C1", name="x", prefecture="大阪府", city="大阪市").full_address == "大阪府大阪市"


def test_search_models_bounds():
    assert SearchHit(score=3).score == 1.0
    assert SearchHit(score="bad").score == 0.0
    with pytest.raises(ValidationError):
        SearchValidation(is_valid=True, confidence=1.5)


def test_status_terminality():
    assert ProcessingStatus.COMPLETED.is_terminal
    assert ProcessingStatus.SKIPPED.is_terminal
    assert not ProcessingStatus.IN_PROGRESS.is_terminal


def test_batch_report_summary():
    report = BatchReport(batch_id="BATCH_X", started_at=NOW, total=4, processed=4, successful=3, errors=1,
                         status=BatchStatus.PARTIAL_SUCCESS)
    assert report.success_rate == 75.0
    lines = report.summary_lines()
    assert "Status:       PARTIAL_SUCCESS" in lines
    assert BatchReport(batch_id="B", started_at=NOW).success_rate == 0.0


# ─────────────────────────────────────────────────────────────────────────────
# NORMALIZATION
# ─────────────────────────────────────────────────────────────────────────────

def test_normalize_company_name():
    assert normalize_company_name("Acme Corp.") == "acme"
    assert normalize_company_name("株式会社トヨタ") == "トヨタ"
    assert normalize_company_name("(株)サンプル") == "サンプル"
    assert normalize_company_name("Inc") == "inc"
    assert name_slug("Acme & Sons, Ltd.") == "acmeandsons"


def test_phone_formatting_and_location():
    assert format_phone_number("0312345678") == "03-1234-5678"
    assert format_phone_number("06 1234 5678") == "06-1234-5678"
    assert format_phone_number("09012345678") == "090-1234-5678"
    assert format_phone_number("+81 3 1234 5678") == "+81 3 1234 5678"
    assert format_phone_number(None) is None
    assert infer_location_from_phone("045-123-4567") == ("神奈川県", "横浜市")
    assert infer_location_from_phone("03-1234-5678") == ("東京都", None)
    assert infer_location_from_phone("099-123-4567") == (None, None)


def test_value_coercion():
    assert clean_text("  n/a ") is None
    assert clean_text(["x"]) is None
    assert clean_text(" 'Acme', ") == "Acme"
    assert coerce_int("約1,200名") == 1200
    assert coerce_int("16192.0") == 16192
    assert coerce_int("unknown") is None
    assert coerce_int(True) is None
    assert coerce_year("2005-04-01") == 2005
    assert coerce_year("昭和50年") is None


# ─────────────────────────────────────────────────────────────────────────────
# CONFIG
# ─────────────────────────────────────────────────────────────────────────────

def test_config_from_env_overrides():
    config = ProcessingConfig.from_env({
        "CR_RATE_LIMIT_DELAY": "2.5",
        "CR_MAX_ATTEMPTS": "5",
        "CR_ENABLE_CACHE": "no",
        "CR_BATCH_SIZE": "",
    })
    assert config.rate_limit_delay == 2.5
    assert config.max_attempts == 5
    assert config.enable_cache is False
    assert config.batch_size == 8


def test_config_tuple_override():
    config = SearchConfig.from_env({"CR_OFFICIAL_DOMAINS": "acme.co.jp, acme.com"})
    assert config.official_domains == ("acme.co.jp", "acme.com")


def test_config_bad_value():
    with pytest.raises(ValueError, match="CR_MAX_ATTEMPTS"):
        ProcessingConfig.from_env({"CR_MAX_ATTEMPTS": "three"})


def test_credentials_file_then_env(tmp_path, monkeypatch):
    (tmp_path / "tavily_api_key.txt").write_text("# comment\n\ntvly-from-file\n")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    assert _load_credential("tavily_api_key.txt", tmp_path) == "tvly-from-file"
    assert _load_credential("openai_api_key.txt", tmp_path) == "sk-from-env"


def test_api_keys_validate():
    keys = APIKeys(tavily="t", openai="o")
    assert keys.validate() == []
    assert keys.status() == {"tavily": True, "openai": True}
