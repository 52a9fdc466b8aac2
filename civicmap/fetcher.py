"""Bounded-parallel range queries against the document store."""

from __future__ import annotations

import logging
from collections.abc import Collection
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from pydantic import ValidationError

from civicmap.models import ALL_CATEGORIES, Category, Issue, Partition, StoreRecord
from civicmap.normalize import issue_from_record
from civicmap.storage.base import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class IssueFetchResult:
    issues: list[Issue] = field(default_factory=list)
    failed_partitions: list[Partition] = field(default_factory=list)
    records_fetched: int = 0
    malformed: int = 0


def category_predicate(categories: Collection[Category | str] | None) -> list[str] | None:
    """Category values to push down to the store, or ``None`` when the predicate is redundant.

    An empty selection and a full selection both query without a predicate.
    """
    if not categories:
        return None
    selected = {Category.parse(value) for value in categories}
    if selected >= ALL_CATEGORIES:
        return None
    return sorted(category.value for category in selected)


class IssueFetcher:
    def __init__(self, store: DocumentStore, max_workers: int = 8) -> None:
        self.store = store
        self.max_workers = max(1, max_workers)

    def fetch(
        self,
        partitions: list[Partition],
        categories: Collection[Category | str] | None = None,
    ) -> IssueFetchResult:
        result = IssueFetchResult()
        if not partitions:
            return result

        predicate = category_predicate(categories)

        def _query(partition: Partition) -> list[StoreRecord]:
            return self.store.query_issues(low=partition.low, high=partition.high, categories=predicate)

        workers = min(self.max_workers, len(partitions))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="civicmap-range") as pool:
            futures = [pool.submit(_query, partition) for partition in partitions]
            pages: list[list[StoreRecord]] = []
            for partition, future in zip(partitions, futures):
                try:
                    pages.append(future.result())
                except Exception as exc:
                    logger.warning("Range query failed for [%s, %s]: %s", partition.low, partition.high, exc)
                    result.failed_partitions.append(partition)

        by_id: dict[str, Issue] = {}
        for page in pages:
            for record in page:
                result.records_fetched += 1
                if record.id in by_id:
                    continue
                try:
                    by_id[record.id] = issue_from_record(record)
                except ValidationError as exc:
                    result.malformed += 1
                    logger.warning("Skipping malformed issue %s: %s", record.id, exc)

        result.issues = list(by_id.values())
        logger.debug(
            "Fetched %s issue records across %s ranges (unique=%s failed_ranges=%s)",
            result.records_fetched,
            len(partitions),
            len(result.issues),
            len(result.failed_partitions),
        )
        return result
