"""
Batch Orchestrator

Drives the ResearchOrchestrator over the store's queue, one company at
a time:

    1. Mark the entry in_progress (skipped if it already is)
    2. Research it under the entry's company id (assigned on first research
       and reused by every re-run, so results upsert onto one record)
    3. Success: save the company, then its branches. A failed branch save
       leaves the entry in error even though the company row was written;
       the status column is the single source of truth for "fully done".
    4. Failure: status error with the classified message
    5. Sleep between companies (on top of the gateway's own pacing)

Pending and stale in_progress entries are picked up; error entries are
not re-queued automatically (run_for_names re-runs them on request).
A stop request is honoured before the next company starts. Only one run
may be active at a time.
"""

import logging
import random
import string
from typing import Optional

from .common.clock import Clock, SystemClock, utc_datetime
from .config import PROCESSING, ProcessingConfig
from .errors import AlreadyRunning, ErrorClassifier, StoreWriteError
from .interfaces import EntityStore, Notifier
from .models import (
    BatchReport,
    BatchStatus,
    Company,
    EntityOutcome,
    ProcessingStatus,
    QueueEntry,
    QUEUEABLE_STATUSES,
)
from .notifier import LoggingNotifier
from .research import ResearchOrchestrator

logger = logging.getLogger(__name__)


def generate_batch_id(clock: Clock) -> str:
    """BATCH_<YYYYmmddTHHMMSS>_<6 random chars>."""
    stamp = utc_datetime(clock).strftime("%Y%m%dT%H%M%S")
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"BATCH_{stamp}_{suffix}"


def batch_status(report: BatchReport) -> BatchStatus:
    if report.stopped and report.processed < report.total:
        return BatchStatus.STOPPED
    if report.errors == 0:
        return BatchStatus.SUCCESS
    if report.successful > 0:
        return BatchStatus.PARTIAL_SUCCESS
    return BatchStatus.FAILED


def format_notification(report: BatchReport) -> tuple[str, str]:
    """(subject, body) for the end-of-run notification."""
    subject = (
        f"[Company Research] Batch {report.status.value}: "
        f"{report.successful}/{report.total} succeeded"
    )
    lines = report.summary_lines()
    failed = [o for o in report.outcomes if o.status is ProcessingStatus.ERROR]
    if failed:
        lines.append("")
        lines.append("Failed companies:")
        lines.extend(f"  - {o.name}: {o.error_message}" for o in failed)
    return subject, "\n".join(lines)


class BatchOrchestrator:
    """
    Sequential batch runner with per-company status tracking.

    Args:
        store: Queue and result tables.
        researcher: Researches one company.
        classifier: Classifies store failures (shared with the researcher).
        notifier: Receives the end-of-run summary. Defaults to logging it.
        clock: Sleeper for the pause between companies.
        config: Batch size and inter-company delay.
    """

    def __init__(
        self,
        store: EntityStore,
        researcher: ResearchOrchestrator,
        classifier: ErrorClassifier,
        notifier: Optional[Notifier] = None,
        clock: Optional[Clock] = None,
        config: ProcessingConfig = PROCESSING,
    ):
        self.store = store
        self.researcher = researcher
        self.classifier = classifier
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or SystemClock()
        self.config = config
        self._is_processing = False
        self._stop_requested = False
        self._current: Optional[BatchReport] = None

    # ─────────────────────────────────────────────────────────────────────────
    # CONTROL
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    def stop(self) -> None:
        """Ask the active run to stop before its next company."""
        if self._is_processing:
            logger.warning("Stop requested; finishing the current company first")
        self._stop_requested = True

    def progress(self) -> Optional[BatchReport]:
        """Snapshot of the active run's report (None when idle)."""
        return self._current.model_copy(deep=True) if self._current else None

    # ─────────────────────────────────────────────────────────────────────────
    # RUNS
    # ─────────────────────────────────────────────────────────────────────────

    def run(self, max_batch_size: Optional[int] = None) -> BatchReport:
        """
        Process pending (and stale in_progress) entries.

        Args:
            max_batch_size: Cap on entries this run; defaults to config.batch_size.

        Raises:
            AlreadyRunning: Another run is active in this process.
            ValueError: max_batch_size is negative.
        """
        limit = max_batch_size if max_batch_size is not None else self.config.batch_size
        if limit < 0:
            raise ValueError(f"max_batch_size must be >= 0, got {limit}")
        if self._is_processing:
            raise AlreadyRunning()
        self._is_processing = True
        try:
            pending = [e for e in self.store.list_pending() if e.status in QUEUEABLE_STATUSES]
            reclaimed = sum(1 for e in pending if e.status is ProcessingStatus.IN_PROGRESS)
            if reclaimed:
                logger.info("Reclaiming %d stale in-progress entries", reclaimed)
            return self._process(pending[:limit])
        finally:
            self._is_processing = False

    def run_for_names(self, names: list[str]) -> BatchReport:
        """
        Process the entries with these names, whatever their status.

        This is how entries left in error by earlier runs are retried.

        Raises:
            AlreadyRunning: Another run is active in this process.
        """
        if self._is_processing:
            raise AlreadyRunning()
        self._is_processing = True
        try:
            wanted = {name.strip() for name in names if name and name.strip()}
            entries = [e for e in self.store.list_entries() if e.name.strip() in wanted]
            missing = wanted - {e.name.strip() for e in entries}
            if missing:
                logger.warning("Not in the company list: %s", ", ".join(sorted(missing)))
            return self._process(entries)
        finally:
            self._is_processing = False

    def _process(self, entries: list[QueueEntry]) -> BatchReport:
        self._stop_requested = False
        started = self.clock.now()
        report = BatchReport(
            batch_id=generate_batch_id(self.clock),
            started_at=utc_datetime(self.clock),
            total=len(entries),
        )
        self._current = report
        logger.info("Batch %s started: %d companies", report.batch_id, report.total)

        for index, entry in enumerate(entries, 1):
            if self._stop_requested:
                logger.warning("Batch %s stopped before %d/%d", report.batch_id, index, report.total)
                report.stopped = True
                break

            outcome = self.process_entry(entry, batch_size=report.total)
            report.outcomes.append(outcome)
            report.processed += 1
            if outcome.status is ProcessingStatus.COMPLETED:
                report.successful += 1
            elif outcome.status is ProcessingStatus.SKIPPED:
                report.skipped += 1
            else:
                report.errors += 1

            logger.info(
                "[%d/%d] %s -> %s%s",
                index, report.total, entry.name or "<blank>", outcome.status.value,
                f" ({outcome.error_message})" if outcome.error_message else "",
            )

            if index < report.total:
                self.clock.sleep(self.config.processing_delay)

        report.finished_at = utc_datetime(self.clock)
        report.duration_seconds = round(self.clock.now() - started, 3)
        report.status = batch_status(report)
        self._finalize(report)
        self._current = None
        return report

    def process_entry(self, entry: QueueEntry, batch_size: int = 1) -> EntityOutcome:
        """
        Research one queue entry and persist its outcome.

        Never raises: store failures become an error status (when the
        store still accepts status writes) and an error outcome.
        """
        if not entry.name or not entry.name.strip():
            self._safe_set_status(entry, ProcessingStatus.SKIPPED, "company name is empty")
            return EntityOutcome(
                entry_id=entry.entry_id, name=entry.name,
                status=ProcessingStatus.SKIPPED, error_message="company name is empty",
            )

        try:
            if self.store.get_status(entry.entry_id) is not ProcessingStatus.IN_PROGRESS:
                self.store.set_status(entry.entry_id, ProcessingStatus.IN_PROGRESS)

            company_id = entry.company_id
            if company_id is None:
                company_id = Company.generate_id(entry.name, self.clock.now())
                self.store.set_company_id(entry.entry_id, company_id)

            result = self.researcher.research(
                entry.name, entry.phone, context={"batch_size": batch_size}, company_id=company_id,
            )

            if not result.success:
                message = result.error.message
                self.store.set_status(entry.entry_id, ProcessingStatus.ERROR, message)
                return EntityOutcome(
                    entry_id=entry.entry_id, name=entry.name, status=ProcessingStatus.ERROR,
                    error_message=message, error_type=result.error.type.value,
                )

            company = result.company
            if not self.store.save_company(company):
                raise StoreWriteError("failed to save company record")
            if result.branches and not self.store.save_branches(company.id, result.branches):
                message = f"company record saved but failed to save {len(result.branches)} branch records"
                # The headquarters row stays, flagged so it is not read as complete
                company.mark_error(message, utc_datetime(self.clock))
                self.store.save_company(company)
                raise StoreWriteError(message)

            self.store.set_status(entry.entry_id, ProcessingStatus.COMPLETED)
            return EntityOutcome(
                entry_id=entry.entry_id, name=entry.name, status=ProcessingStatus.COMPLETED,
                company_id=company.id, reliability_score=company.reliability_score,
            )

        except Exception as e:
            error = self.classifier.classify(e, {
                "company_name": entry.name,
                "entry_id": entry.entry_id,
                "stage": "persist",
                "batch_size": batch_size,
            })
            message = f"save failed: {error.message}"
            self._safe_set_status(entry, ProcessingStatus.ERROR, message)
            return EntityOutcome(
                entry_id=entry.entry_id, name=entry.name, status=ProcessingStatus.ERROR,
                error_message=message, error_type=error.type.value,
            )

    def _safe_set_status(self, entry: QueueEntry, status: ProcessingStatus, message: Optional[str]) -> None:
        try:
            self.store.set_status(entry.entry_id, status, message)
        except Exception as e:
            # Entry stays in_progress and is reclaimed by the next run
            logger.error("Could not set %s on %r: %s", status.value, entry.name, e)

    def _finalize(self, report: BatchReport) -> None:
        """Persist the summary and notify once. Neither failure hides the report."""
        logger.info("Batch %s finished:\n  %s", report.batch_id, "\n  ".join(report.summary_lines()))

        try:
            self.store.record_batch_summary(report)
        except Exception as e:
            logger.error("Could not record batch summary %s: %s", report.batch_id, e)

        subject, body = format_notification(report)
        try:
            self.notifier.notify(subject, body)
        except Exception as e:
            logger.error("Notification failed for batch %s: %s", report.batch_id, e)

        for alert in self.classifier.critical_alerts():
            logger.error("ALERT: %s", alert)
