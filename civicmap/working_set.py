"""Append-only report set keyed by ``(issue_id, report_id)``."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from civicmap.models import Report


class WorkingReportSet:
    def __init__(self, reports: Iterable[Report] | None = None) -> None:
        self._lock = threading.Lock()
        self._reports: dict[tuple[str, str], Report] = {}
        if reports:
            self.merge(reports)

    def merge(self, reports: Iterable[Report]) -> list[Report]:
        """Add reports whose composite key is not present yet; returns the ones added."""
        added: list[Report] = []
        with self._lock:
            for report in reports:
                if report.key in self._reports:
                    continue
                self._reports[report.key] = report
                added.append(report)
        return added

    def as_list(self) -> list[Report]:
        with self._lock:
            return list(self._reports.values())

    def keys(self) -> set[tuple[str, str]]:
        with self._lock:
            return set(self._reports)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._reports

    def __len__(self) -> int:
        with self._lock:
            return len(self._reports)
