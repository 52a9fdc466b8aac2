"""In-memory document store."""

from __future__ import annotations

import threading
from collections.abc import Collection

from civicmap.models import StoreRecord


class MemoryDocumentStore:
    """Dict-backed store with the same query contract as the SQLite backend."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._issues: dict[str, StoreRecord] = {}
        self._reports: dict[str, dict[str, StoreRecord]] = {}

    def upsert_issue(self, record: StoreRecord) -> None:
        with self._lock:
            self._issues[record.id] = record

    def upsert_report(self, issue_id: str, record: StoreRecord) -> None:
        with self._lock:
            self._reports.setdefault(issue_id, {})[record.id] = record

    def query_issues(
        self,
        *,
        low: str,
        high: str,
        categories: Collection[str] | None = None,
    ) -> list[StoreRecord]:
        allowed = set(categories) if categories is not None else None
        with self._lock:
            snapshot = list(self._issues.values())
        matched: list[tuple[str, StoreRecord]] = []
        for record in snapshot:
            key = record.fields.get("geohash")
            if not isinstance(key, str) or not (low <= key <= high):
                continue
            if allowed is not None and record.fields.get("category") not in allowed:
                continue
            matched.append((key, record))
        matched.sort(key=lambda item: (item[0], item[1].id))
        return [record for _, record in matched]

    def list_reports(self, issue_id: str) -> list[StoreRecord]:
        with self._lock:
            return list(self._reports.get(issue_id, {}).values())

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {
                "issues": len(self._issues),
                "reports": sum(len(items) for items in self._reports.values()),
            }
