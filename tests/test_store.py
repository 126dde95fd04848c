from datetime import datetime, timezone

import pytest

from company_research.models import BatchReport, BatchStatus, BranchRecord, BranchType, Company, ProcessingStatus
from company_research.store import FileEntityStore, InMemoryEntityStore

from .conftest import FakeClock


@pytest.fixture
def file_store(tmp_path):
    return FileEntityStore(tmp_path / "store", clock=FakeClock())


def acme(**overrides) -> Company:
    fields = dict(
        id="COMP_acme_1", name="Acme Corp", phone="03-1234-5678", employees=1200,
        source_urls=["https://www.acme.co.jp", "https://dir.example/acme"],
    )
    fields.update(overrides)
    return Company(**fields)


# ─────────────────────────────────────────────────────────────────────────────
# QUEUE
# ─────────────────────────────────────────────────────────────────────────────

def test_queue_round_trip(file_store):
    file_store.add("Acme Corp", "03-1234-5678")
    file_store.add("Beta Inc")

    entries = file_store.list_entries()
    assert [e.entry_id for e in entries] == ["E00001", "E00002"]
    assert entries[0].phone == "03-1234-5678"
    assert entries[1].phone is None
    assert all(e.status is ProcessingStatus.PENDING for e in entries)
    assert (file_store.directory / "company_list.csv").exists()


def test_set_status_stamps_terminal_states(file_store):
    file_store.add("Acme Corp")
    file_store.add("Beta Inc")

    file_store.set_status("E00001", ProcessingStatus.IN_PROGRESS)
    assert file_store.list_entries()[0].processed_at is None
    assert [e.entry_id for e in file_store.list_pending()] == ["E00001", "E00002"]

    file_store.set_status("E00001", ProcessingStatus.ERROR, "search returned nothing")
    entry = file_store.list_entries()[0]
    assert entry.status is ProcessingStatus.ERROR
    assert entry.error_message == "search returned nothing"
    assert entry.processed_at == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
    assert file_store.get_status("E00001") is ProcessingStatus.ERROR
    assert [e.entry_id for e in file_store.list_pending()] == ["E00002"]

    file_store.set_status("E00001", ProcessingStatus.COMPLETED)
    assert file_store.list_entries()[0].error_message is None


def test_unknown_entry_ids(file_store):
    file_store.add("Acme Corp")
    with pytest.raises(KeyError):
        file_store.get_status("E99999")
    with pytest.raises(KeyError):
        file_store.set_status("E99999", ProcessingStatus.COMPLETED)


def test_company_id_is_remembered_per_entry(file_store):
    file_store.add("Acme Corp")
    file_store.add("Beta Inc")
    assert file_store.list_entries()[0].company_id is None

    file_store.set_company_id("E00001", "COMP_acmecorp_1")
    file_store.set_status("E00001", ProcessingStatus.ERROR, "boom")

    entries = file_store.list_entries()
    assert entries[0].company_id == "COMP_acmecorp_1"
    assert entries[1].company_id is None
    with pytest.raises(KeyError):
        file_store.set_company_id("E99999", "COMP_x_1")


def test_unknown_status_reads_as_pending(file_store):
    file_store.queue_path.write_text(
        "entry_id,name,phone,status,processed_at,error_message\n"
        "E00001,Acme Corp,,archived,,\n"
        "E00002,Beta Inc,,,,\n",
        encoding="utf-8",
    )
    assert [e.status for e in file_store.list_pending()] == [ProcessingStatus.PENDING] * 2


def test_missing_files_read_empty(file_store):
    assert file_store.list_entries() == []
    assert file_store.load_companies().empty
    assert file_store.batch_summaries() == []


# ─────────────────────────────────────────────────────────────────────────────
# RESULTS
# ─────────────────────────────────────────────────────────────────────────────

def test_save_company_upserts_by_id(file_store):
    assert file_store.save_company(acme())
    assert file_store.save_company(acme(employees=1300))
    assert file_store.save_company(acme(id="COMP_beta_2", name="Beta Inc"))

    df = file_store.load_companies()
    assert len(df) == 2
    row = df[df["id"] == "COMP_acme_1"].iloc[0]
    assert row["employees"] == "1300"
    assert row["source_urls"] == "https://www.acme.co.jp | https://dir.example/acme"
    assert row["processing_result"] == "INITIALIZED"
    assert row["official_name"] == ""


def test_save_branches_replaces_per_company(file_store):
    first = [BranchRecord(company_id="C1", name="Osaka", type=BranchType.OFFICE),
             BranchRecord(company_id="C1", name="Nagoya", type=BranchType.BRANCH)]
    assert file_store.save_branches("C1", first)
    assert file_store.save_branches("C2", [BranchRecord(company_id="C2", name="Sendai")])
    assert file_store.save_branches("C1", [BranchRecord(company_id="C1", name="Fukuoka", type=BranchType.FACTORY)])

    c1 = file_store.load_branches("C1")
    assert list(c1["name"]) == ["Fukuoka"]
    assert list(c1["type"]) == ["factory"]
    assert len(file_store.load_branches()) == 2

    assert file_store.save_branches("C1", [])
    assert file_store.load_branches("C1").empty


def test_batch_summaries_append(file_store):
    started = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)
    for batch_id in ("BATCH_A", "BATCH_B"):
        file_store.record_batch_summary(BatchReport(
            batch_id=batch_id, started_at=started, total=1, processed=1, successful=1,
            status=BatchStatus.SUCCESS,
        ))

    summaries = file_store.batch_summaries()
    assert [s["batch_id"] for s in summaries] == ["BATCH_A", "BATCH_B"]
    assert summaries[0]["status"] == "SUCCESS"
    assert summaries[0]["started_at"].startswith("2026-01-15T09:00:00")


# ─────────────────────────────────────────────────────────────────────────────
# IN-MEMORY STORE
# ─────────────────────────────────────────────────────────────────────────────

def test_in_memory_store_copies(clock):
    store = InMemoryEntityStore(clock=clock)
    entry = store.add("Acme Corp")

    listed = store.list_pending()[0]
    listed.status = ProcessingStatus.COMPLETED
    assert store.get_status(entry.entry_id) is ProcessingStatus.PENDING

    store.set_status(entry.entry_id, ProcessingStatus.SKIPPED, "company name is empty")
    assert store.list_pending() == []
    assert store.entries[entry.entry_id].processed_at is not None

    company = acme()
    store.save_company(company)
    company.employees = 5
    assert store.companies["COMP_acme_1"].employees == 1200

    with pytest.raises(KeyError):
        store.set_status("nope", ProcessingStatus.ERROR)
