"""
Collaborator Interfaces

Protocols for everything the pipeline talks to but does not own:
the persistent queue/result store, the search and extraction
providers, and the notification sender. Concrete implementations live
in store.py, search/tavily.py, extraction/openai_client.py and
notifier.py; tests use fakes.
"""

from typing import Optional, Protocol

from .common.clock import Clock
from .models import BatchReport, BranchRecord, Company, ProcessingStatus, QueueEntry, SearchHit

__all__ = [
    "Clock",
    "EntityStore",
    "SearchProvider",
    "ExtractionProvider",
    "Notifier",
]


class EntityStore(Protocol):
    """Queue of companies to research plus the tables results land in."""

    def list_pending(self) -> list[QueueEntry]:
        """Entries with status PENDING or IN_PROGRESS, in queue order."""
        ...

    def list_entries(self) -> list[QueueEntry]:
        """Every entry regardless of status, in queue order."""
        ...

    def get_status(self, entry_id: str) -> ProcessingStatus:
        ...

    def set_status(self, entry_id: str, status: ProcessingStatus, error: Optional[str] = None) -> None:
        ...

    def set_company_id(self, entry_id: str, company_id: str) -> None:
        """Remember the company id researched for this entry."""
        ...

    def save_company(self, company: Company) -> bool:
        """Upsert the headquarters record. False when the write failed."""
        ...

    def save_branches(self, company_id: str, branches: list[BranchRecord]) -> bool:
        """Replace the company's branch rows. False when the write failed."""
        ...

    def record_batch_summary(self, report: BatchReport) -> None:
        ...


class SearchProvider(Protocol):
    """Web search returning normalized hits."""

    def search(self, query: str, **options) -> list[SearchHit]:
        ...


class ExtractionProvider(Protocol):
    """
    Chat-completion style model call.

    `context_window` is the model's prompt+response token limit.
    """

    context_window: int

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        json_mode: bool = True,
    ) -> str:
        ...


class Notifier(Protocol):
    def notify(self, subject: str, body: str) -> None:
        ...
