"""Versioned acquisition state owned by one viewport controller."""

from __future__ import annotations

from dataclasses import dataclass, field

from civicmap.dedup import FetchDeduper, IssueSeenSet
from civicmap.working_set import WorkingReportSet


@dataclass
class AcquisitionState:
    """Partition seen-set, issue seen-set and working reports of one generation.

    A relocation reset replaces the whole object, so a cycle still holding the
    previous generation can only ever touch stale sets.
    """

    generation: int = 0
    partitions: FetchDeduper = field(default_factory=FetchDeduper)
    issues: IssueSeenSet = field(default_factory=IssueSeenSet)
    reports: WorkingReportSet = field(default_factory=WorkingReportSet)

    def is_empty(self) -> bool:
        return len(self.partitions) == 0 and len(self.issues) == 0 and len(self.reports) == 0

    def summary(self) -> dict[str, int]:
        return {
            "generation": self.generation,
            "partitions_seen": len(self.partitions),
            "issues_seen": len(self.issues),
            "reports": len(self.reports),
        }
