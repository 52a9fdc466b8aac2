"""Seen-set bookkeeping for partitions and issues."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from civicmap.models import Partition, PartitionKey


class FetchDeduper:
    """Remembers which ``(zoom tier, range)`` partitions were already requested.

    Membership is permanent for the lifetime of the owning acquisition state;
    a range whose query later fails stays marked and is not retried.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seen: set[PartitionKey] = set()

    def claim(self, zoom_tier: int, partitions: Iterable[Partition]) -> list[Partition]:
        """Drop already-seen partitions, mark the rest as seen and return them."""
        fresh: list[Partition] = []
        with self._lock:
            for partition in partitions:
                key = PartitionKey.of(zoom_tier, partition)
                if key in self._seen:
                    continue
                self._seen.add(key)
                fresh.append(partition)
        return fresh

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def keys(self) -> set[PartitionKey]:
        with self._lock:
            return set(self._seen)


class IssueSeenSet:
    """Issue ids whose reports were aggregated (or are being aggregated)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: set[str] = set()

    def add(self, issue_id: str) -> bool:
        """Mark an issue; returns False when it was already marked."""
        with self._lock:
            if issue_id in self._ids:
                return False
            self._ids.add(issue_id)
            return True

    def discard(self, issue_id: str) -> None:
        with self._lock:
            self._ids.discard(issue_id)

    def __contains__(self, issue_id: object) -> bool:
        with self._lock:
            return issue_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    def ids(self) -> set[str]:
        with self._lock:
            return set(self._ids)
