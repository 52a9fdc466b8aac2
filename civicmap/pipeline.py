"""One fetch cycle: partition, dedupe, fetch, filter, aggregate, merge."""

from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Callable, Collection

from civicmap.aggregator import ReportAggregator
from civicmap.config import CivicMapConfig
from civicmap.fetcher import IssueFetcher
from civicmap.hooks import HookManager, HookName
from civicmap.models import Category, FetchCycleReport, Partition, Viewport
from civicmap.partitioner import partition_disk, viewport_radius_m
from civicmap.quality import QualityFilter
from civicmap.state import AcquisitionState
from civicmap.storage.base import DocumentStore

logger = logging.getLogger(__name__)

Partitioner = Callable[[Viewport, float], list[Partition]]


def _default_partitioner(viewport: Viewport, radius_m: float) -> list[Partition]:
    return partition_disk(viewport.center, radius_m)


class FetchPipeline:
    def __init__(
        self,
        config: CivicMapConfig,
        store: DocumentStore,
        hooks: HookManager | None = None,
        partitioner: Partitioner | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.hooks = hooks or HookManager()
        self.partitioner = partitioner or _default_partitioner
        self.fetcher = IssueFetcher(store, max_workers=config.fetch.max_range_workers)
        self.quality = QualityFilter(config.quality)
        self.aggregator = ReportAggregator(store, max_workers=config.fetch.max_report_workers)

    def run_cycle(
        self,
        viewport: Viewport,
        categories: Collection[Category | str] | None,
        state: AcquisitionState,
        *,
        is_current: Callable[[], bool] | None = None,
    ) -> FetchCycleReport:
        """Run one cycle against ``state``; merge is skipped when ``is_current`` turns False."""
        cycle_start = time.perf_counter()
        zoom_tier = viewport.zoom_tier(self.config.fetch.default_zoom)
        radius_m = viewport_radius_m(viewport, self.config.fetch.radius_multiplier)
        report = FetchCycleReport(generation=state.generation, zoom_tier=zoom_tier, radius_m=radius_m)
        context = {
            "generation": state.generation,
            "zoom_tier": zoom_tier,
            "center": viewport.center.as_tuple(),
        }
        self.hooks.emit(HookName.BEFORE_CYCLE, context, {"state": state.summary()})
        logger.info(
            "Starting fetch cycle gen=%s center=(%.5f, %.5f) zoom_tier=%s radius=%.0fm",
            state.generation,
            viewport.center.lat,
            viewport.center.lng,
            zoom_tier,
            radius_m,
        )

        candidates = self.partitioner(viewport, radius_m)
        report.candidate_partitions = len(candidates)
        self.hooks.emit(HookName.AFTER_PARTITION, context, {"partitions": len(candidates)})

        fresh = state.partitions.claim(zoom_tier, candidates)
        report.new_partitions = len(fresh)
        self.hooks.emit(HookName.AFTER_DEDUP, context, {"new_partitions": len(fresh)})
        if not fresh:
            report.skipped = True
            report.profile = {"timing_seconds": {"total": time.perf_counter() - cycle_start}}
            logger.debug("All %s candidate partitions already fetched at zoom tier %s", len(candidates), zoom_tier)
            return report

        fetch_start = time.perf_counter()
        fetched = self.fetcher.fetch(fresh, categories)
        fetch_elapsed = time.perf_counter() - fetch_start
        report.failed_partitions = len(fetched.failed_partitions)
        report.issues_fetched = len(fetched.issues)
        report.issues_malformed = fetched.malformed
        self.hooks.emit(
            HookName.AFTER_FETCH,
            context,
            {"issues": len(fetched.issues), "failed_partitions": len(fetched.failed_partitions)},
        )
        logger.info(
            "Range queries complete: ranges=%s failed=%s issues=%s in %.2fs",
            len(fresh),
            len(fetched.failed_partitions),
            len(fetched.issues),
            fetch_elapsed,
        )

        admitted, decisions = self.quality.admit(fetched.issues, state.issues)
        report.issues_admitted = len(admitted)
        report.issues_rejected = len(decisions) - len(admitted)
        reason_counts: Counter[str] = Counter()
        for decision in decisions:
            reason_counts.update(decision.reason_codes)
        self.hooks.emit(HookName.AFTER_QUALITY, context, {"admitted": len(admitted), "rejected": report.issues_rejected})
        if reason_counts:
            logger.debug("Quality reason counts: %s", dict(reason_counts))
        if not admitted:
            report.profile = {
                "timing_seconds": {"fetch": fetch_elapsed, "total": time.perf_counter() - cycle_start},
                "quality_reasons": dict(reason_counts),
            }
            logger.info("No new eligible issues in this cycle (rejected=%s)", report.issues_rejected)
            return report

        aggregate_start = time.perf_counter()
        aggregated = self.aggregator.aggregate(admitted, state.issues)
        aggregate_elapsed = time.perf_counter() - aggregate_start
        failed = set(aggregated.failed_issue_ids)
        report.issues_failed = len(failed)
        report.admitted_issue_ids = [issue.id for issue in admitted if issue.id not in failed]
        report.reports_fetched = aggregated.raw_reports
        report.reports_dropped = aggregated.dropped_reports
        self.hooks.emit(
            HookName.AFTER_AGGREGATE,
            context,
            {"reports": len(aggregated.reports), "failed_issues": len(failed)},
        )
        logger.info(
            "Report aggregation complete: issues=%s failed=%s reports=%s dropped=%s in %.2fs",
            len(admitted),
            len(failed),
            len(aggregated.reports),
            aggregated.dropped_reports,
            aggregate_elapsed,
        )

        if is_current is not None and not is_current():
            report.discarded = True
            logger.info("Discarding results of stale fetch cycle gen=%s", state.generation)
        else:
            added = state.reports.merge(aggregated.reports)
            report.reports_added = len(added)
            self.hooks.emit(HookName.AFTER_MERGE, context, {"added": len(added), "total": len(state.reports)})

        total_elapsed = time.perf_counter() - cycle_start
        report.profile = {
            "timing_seconds": {
                "fetch": fetch_elapsed,
                "aggregate": aggregate_elapsed,
                "total": total_elapsed,
            },
            "quality_reasons": dict(reason_counts),
        }
        logger.info(
            "Fetch cycle completed: gen=%s added=%s working_set=%s total_time=%.2fs",
            state.generation,
            report.reports_added,
            len(state.reports),
            total_elapsed,
        )
        return report
