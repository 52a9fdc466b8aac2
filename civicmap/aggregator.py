"""Per-issue report aggregation."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from civicmap.dedup import IssueSeenSet
from civicmap.models import Issue, Report
from civicmap.normalize import report_from_record
from civicmap.storage.base import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class AggregationResult:
    reports: list[Report] = field(default_factory=list)
    failed_issue_ids: list[str] = field(default_factory=list)
    raw_reports: int = 0
    dropped_reports: int = 0


class ReportAggregator:
    def __init__(self, store: DocumentStore, max_workers: int = 16) -> None:
        self.store = store
        self.max_workers = max(1, max_workers)

    def _collect(self, issue: Issue) -> tuple[list[Report], int]:
        records = self.store.list_reports(issue.id)
        reports: list[Report] = []
        for record in records:
            report = report_from_record(record, issue)
            if report is None:
                logger.debug("Dropping report %s/%s without a usable timestamp or position", issue.id, record.id)
                continue
            reports.append(report)
        return reports, len(records)

    def aggregate(self, issues: list[Issue], seen: IssueSeenSet) -> AggregationResult:
        """Fetch and normalize reports for admitted issues.

        A failing issue is un-marked in ``seen`` so a later cycle may retry it;
        it contributes no reports and never fails the batch.
        """
        result = AggregationResult()
        if not issues:
            return result

        workers = min(self.max_workers, len(issues))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="civicmap-reports") as pool:
            futures = [pool.submit(self._collect, issue) for issue in issues]
            for issue, future in zip(issues, futures):
                try:
                    reports, raw_count = future.result()
                except Exception as exc:
                    logger.warning("Failed to fetch reports for issue %s: %s", issue.id, exc)
                    seen.discard(issue.id)
                    result.failed_issue_ids.append(issue.id)
                    continue
                result.raw_reports += raw_count
                result.dropped_reports += raw_count - len(reports)
                result.reports.extend(reports)

        return result
