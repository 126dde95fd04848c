"""
Entity Stores

Where the queue of companies lives and where results land.

InMemoryEntityStore keeps everything in dicts (library use and tests).
FileEntityStore keeps a directory of flat files:

    company_list.csv    entry_id, name, phone, company_id, status, processed_at, error_message
    headquarters.csv    one row per company, upserted by company id
    branches.csv        branch rows, replaced per company on every save
    batch_runs.jsonl    one summary per batch run, appended

CSV files are read and rewritten with pandas; each rewrite goes through a
temporary file so a crash never leaves a half-written table.
"""

import logging
import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd

from .common.clock import Clock, SystemClock, utc_datetime
from .common.jsonl_writer import JSONLWriter, read_jsonl
from .models import (
    BatchReport,
    BranchRecord,
    Company,
    ProcessingStatus,
    QueueEntry,
    QUEUEABLE_STATUSES,
)

logger = logging.getLogger(__name__)

QUEUE_COLUMNS = ["entry_id", "name", "phone", "company_id", "status", "processed_at", "error_message"]
URL_SEPARATOR = " | "


def _stamp_for(status: ProcessingStatus, clock: Clock) -> Optional[datetime]:
    """Completion time for terminal statuses, None otherwise."""
    return utc_datetime(clock) if status.is_terminal else None


# ─────────────────────────────────────────────────────────────────────────────
# IN-MEMORY STORE
# ─────────────────────────────────────────────────────────────────────────────

class InMemoryEntityStore:
    """
    Dict-backed store.

    Entries keep insertion order. Saved companies, branches and batch
    reports are exposed as plain attributes for inspection.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self.entries: dict[str, QueueEntry] = {}
        self.companies: dict[str, Company] = {}
        self.branches: dict[str, list[BranchRecord]] = {}
        self.batch_summaries: list[BatchReport] = []

    def add(self, name: str, phone: Optional[str] = None, entry_id: Optional[str] = None) -> QueueEntry:
        entry_id = entry_id or f"E{len(self.entries) + 1:05d}"
        entry = QueueEntry(entry_id=entry_id, name=name, phone=phone)
        self.entries[entry_id] = entry
        return entry

    def list_pending(self) -> list[QueueEntry]:
        return [e.model_copy() for e in self.entries.values() if e.status in QUEUEABLE_STATUSES]

    def list_entries(self) -> list[QueueEntry]:
        return [e.model_copy() for e in self.entries.values()]

    def get_status(self, entry_id: str) -> ProcessingStatus:
        return self.entries[entry_id].status

    def set_status(self, entry_id: str, status: ProcessingStatus, error: Optional[str] = None) -> None:
        entry = self.entries[entry_id]
        entry.status = status
        entry.error_message = error
        entry.processed_at = _stamp_for(status, self.clock)

    def set_company_id(self, entry_id: str, company_id: str) -> None:
        self.entries[entry_id].company_id = company_id

    def save_company(self, company: Company) -> bool:
        self.companies[company.id] = company.model_copy(deep=True)
        return True

    def save_branches(self, company_id: str, branches: list[BranchRecord]) -> bool:
        self.branches[company_id] = [b.model_copy() for b in branches]
        return True

    def record_batch_summary(self, report: BatchReport) -> None:
        self.batch_summaries.append(report.model_copy(deep=True))


# ─────────────────────────────────────────────────────────────────────────────
# FILE STORE
# ─────────────────────────────────────────────────────────────────────────────

class FileEntityStore:
    """
    CSV/JSONL store rooted at one directory.

    Args:
        directory: Holds the four files; created if missing.
        clock: Time source for processed_at stamps.
    """

    def __init__(self, directory: Union[str, Path], clock: Optional[Clock] = None):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.clock = clock or SystemClock()
        self.queue_path = self.directory / "company_list.csv"
        self.headquarters_path = self.directory / "headquarters.csv"
        self.branches_path = self.directory / "branches.csv"
        self.summaries_path = self.directory / "batch_runs.jsonl"

    # ─────────────────────────────────────────────────────────────────────────
    # FILE HELPERS
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def _read(path: Path, columns: Optional[list[str]] = None) -> pd.DataFrame:
        """The table as strings, blanks as ''. Empty frame if missing."""
        if not path.exists() or path.stat().st_size == 0:
            return pd.DataFrame(columns=columns or [])
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        for column in columns or []:
            if column not in df.columns:
                df[column] = ""
        return df

    @staticmethod
    def _write(df: pd.DataFrame, path: Path) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        df.to_csv(tmp, index=False)
        os.replace(tmp, path)

    @staticmethod
    def _cell(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, list):
            return URL_SEPARATOR.join(str(v) for v in value)
        if isinstance(value, Enum):
            return str(value.value)
        return str(value)

    # ─────────────────────────────────────────────────────────────────────────
    # QUEUE
    # ─────────────────────────────────────────────────────────────────────────

    def add(self, name: str, phone: Optional[str] = None, entry_id: Optional[str] = None) -> QueueEntry:
        """Append a pending entry to the company list."""
        df = self._read(self.queue_path, QUEUE_COLUMNS)
        entry_id = entry_id or f"E{len(df) + 1:05d}"
        row = {"entry_id": entry_id, "name": name, "phone": phone or "", "company_id": "",
               "status": ProcessingStatus.PENDING.value, "processed_at": "", "error_message": ""}
        df = pd.concat([df, pd.DataFrame([row])], ignore_index=True)
        self._write(df[QUEUE_COLUMNS], self.queue_path)
        return QueueEntry(entry_id=entry_id, name=name, phone=phone)

    def _row_to_entry(self, row: pd.Series) -> QueueEntry:
        try:
            status = ProcessingStatus(row["status"] or ProcessingStatus.PENDING.value)
        except ValueError:
            logger.warning("Unknown status %r for entry %s; treating as pending", row["status"], row["entry_id"])
            status = ProcessingStatus.PENDING
        return QueueEntry(
            entry_id=row["entry_id"],
            name=row["name"],
            phone=row["phone"] or None,
            company_id=row["company_id"] or None,
            status=status,
            processed_at=row["processed_at"] or None,
            error_message=row["error_message"] or None,
        )

    def list_entries(self) -> list[QueueEntry]:
        df = self._read(self.queue_path, QUEUE_COLUMNS)
        return [self._row_to_entry(row) for _, row in df.iterrows()]

    def list_pending(self) -> list[QueueEntry]:
        return [e for e in self.list_entries() if e.status in QUEUEABLE_STATUSES]

    def get_status(self, entry_id: str) -> ProcessingStatus:
        for entry in self.list_entries():
            if entry.entry_id == entry_id:
                return entry.status
        raise KeyError(entry_id)

    def set_status(self, entry_id: str, status: ProcessingStatus, error: Optional[str] = None) -> None:
        df = self._read(self.queue_path, QUEUE_COLUMNS)
        mask = df["entry_id"] == entry_id
        if not mask.any():
            raise KeyError(entry_id)
        df.loc[mask, "status"] = status.value
        df.loc[mask, "error_message"] = error or ""
        df.loc[mask, "processed_at"] = self._cell(_stamp_for(status, self.clock))
        self._write(df[QUEUE_COLUMNS], self.queue_path)

    def set_company_id(self, entry_id: str, company_id: str) -> None:
        df = self._read(self.queue_path, QUEUE_COLUMNS)
        mask = df["entry_id"] == entry_id
        if not mask.any():
            raise KeyError(entry_id)
        df.loc[mask, "company_id"] = company_id
        self._write(df[QUEUE_COLUMNS], self.queue_path)

    # ─────────────────────────────────────────────────────────────────────────
    # RESULTS
    # ─────────────────────────────────────────────────────────────────────────

    def save_company(self, company: Company) -> bool:
        """Upsert the headquarters row for company.id."""
        row = {name: self._cell(getattr(company, name)) for name in Company.model_fields}
        try:
            df = self._read(self.headquarters_path, list(row))
            df = df[df["id"] != company.id]
            df = pd.concat([df, pd.DataFrame([row])], ignore_index=True)
            self._write(df, self.headquarters_path)
        except (OSError, ValueError) as e:
            logger.error("Failed to save company %s: %s", company.id, e)
            return False
        return True

    def save_branches(self, company_id: str, branches: list[BranchRecord]) -> bool:
        """Replace every branch row of company_id."""
        rows = [{name: self._cell(getattr(b, name)) for name in BranchRecord.model_fields} for b in branches]
        columns = list(BranchRecord.model_fields)
        try:
            df = self._read(self.branches_path, columns)
            df = df[df["company_id"] != company_id]
            if rows:
                df = pd.concat([df, pd.DataFrame(rows, columns=columns)], ignore_index=True)
            self._write(df, self.branches_path)
        except (OSError, ValueError) as e:
            logger.error("Failed to save %d branches for %s: %s", len(branches), company_id, e)
            return False
        return True

    def load_companies(self) -> pd.DataFrame:
        return self._read(self.headquarters_path)

    def load_branches(self, company_id: Optional[str] = None) -> pd.DataFrame:
        df = self._read(self.branches_path, list(BranchRecord.model_fields))
        return df if company_id is None else df[df["company_id"] == company_id]

    # ─────────────────────────────────────────────────────────────────────────
    # BATCH SUMMARIES
    # ─────────────────────────────────────────────────────────────────────────

    def record_batch_summary(self, report: BatchReport) -> None:
        with JSONLWriter(self.summaries_path) as writer:
            writer.write(report.model_dump(mode="json"))

    def batch_summaries(self) -> list[dict]:
        return read_jsonl(self.summaries_path)
