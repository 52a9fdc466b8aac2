"""Document store interfaces consumed by the acquisition engine."""

from __future__ import annotations

from collections.abc import Collection
from typing import Protocol

from civicmap.models import StoreRecord


class DocumentStore(Protocol):
    def query_issues(
        self,
        *,
        low: str,
        high: str,
        categories: Collection[str] | None = None,
    ) -> list[StoreRecord]:
        """Issues whose spatial key lies in ``[low, high]``, ordered by key.

        ``categories`` adds a membership predicate on the category field;
        ``None`` means no predicate.
        """
        ...

    def list_reports(self, issue_id: str) -> list[StoreRecord]: ...


class WritableDocumentStore(DocumentStore, Protocol):
    def upsert_issue(self, record: StoreRecord) -> None: ...

    def upsert_report(self, issue_id: str, record: StoreRecord) -> None: ...

    def counts(self) -> dict[str, int]: ...
