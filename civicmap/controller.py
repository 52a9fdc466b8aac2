"""Viewport-driven orchestration of fetch cycles."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, Protocol

from civicmap.config import CivicMapConfig
from civicmap.hooks import HookManager, HookName
from civicmap.models import (
    ALL_CATEGORIES,
    Category,
    ControllerState,
    FetchCycleReport,
    GeoPoint,
    RenderView,
    Report,
    Viewport,
)
from civicmap.partitioner import distance_between_km
from civicmap.pipeline import FetchPipeline
from civicmap.render import MarkerIconCache, build_render_view
from civicmap.state import AcquisitionState
from civicmap.storage import MemoryDocumentStore, SQLiteDocumentStore
from civicmap.storage.base import DocumentStore

logger = logging.getLogger(__name__)


class TimerLike(Protocol):
    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerLike]


class Debouncer:
    """Collapses bursts of triggers into one callback after a quiet window."""

    def __init__(self, delay_seconds: float, callback: Callable[[], Any], timer_factory: TimerFactory = threading.Timer) -> None:
        self.delay_seconds = delay_seconds
        self._callback = callback
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: TimerLike | None = None

    def trigger(self) -> None:
        if self.delay_seconds <= 0:
            self.cancel()
            self._callback()
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self.delay_seconds, lambda: self._fire(timer))
            timer.daemon = True
            self._timer = timer
        timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def _fire(self, timer: TimerLike) -> None:
        with self._lock:
            if self._timer is not timer:
                # Superseded by a later trigger.
                return
            self._timer = None
        self._callback()


def store_from_config(config: CivicMapConfig) -> DocumentStore:
    if config.store.backend == "memory":
        return MemoryDocumentStore()
    if config.store.backend == "sqlite":
        return SQLiteDocumentStore(config.store.sqlite_path)
    raise ValueError(f"Unsupported store backend: {config.store.backend}")


class ViewportController:
    """Single owner of one viewport session's acquisition state.

    At most one fetch cycle runs at a time; settle events that arrive while a
    cycle is in flight are dropped. A relocation reset swaps in a fresh
    :class:`AcquisitionState` generation, and a cycle that started under an
    older generation finishes without merging.
    """

    def __init__(
        self,
        config: CivicMapConfig,
        store: DocumentStore | None = None,
        *,
        pipeline: FetchPipeline | None = None,
        hooks: HookManager | None = None,
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.hooks = hooks or (pipeline.hooks if pipeline else HookManager())
        self.store = store if store is not None else (pipeline.store if pipeline else store_from_config(config))
        self.pipeline = pipeline or FetchPipeline(config, self.store, hooks=self.hooks)
        self.icons = MarkerIconCache()
        self._timer_factory = timer_factory
        self._clock = clock

        self._lock = threading.Lock()
        self._inflight = threading.Lock()
        self._state = ControllerState.IDLE
        self._generation = 0
        self._acquisition = AcquisitionState(generation=0)
        self._viewport: Viewport | None = None
        self._categories: set[Category] = set(ALL_CATEGORIES)
        self._reference: GeoPoint | None = None
        self._location_resolved = False
        self._initial_fetch_done = False
        self._refetch_pending = False
        self._last_report: FetchCycleReport | None = None
        self._location_timer: TimerLike | None = None
        self._debouncer = Debouncer(config.viewport.debounce_seconds, self._on_debounce_elapsed, timer_factory)

    @property
    def state(self) -> ControllerState:
        with self._lock:
            return self._state

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def acquisition(self) -> AcquisitionState:
        with self._lock:
            return self._acquisition

    @property
    def viewport(self) -> Viewport | None:
        with self._lock:
            return self._viewport

    @property
    def categories(self) -> set[Category]:
        with self._lock:
            return set(self._categories)

    @property
    def reference_location(self) -> GeoPoint | None:
        with self._lock:
            return self._reference

    @property
    def last_report(self) -> FetchCycleReport | None:
        with self._lock:
            return self._last_report

    @property
    def location_resolved(self) -> bool:
        with self._lock:
            return self._location_resolved

    def working_set(self) -> list[Report]:
        return self.acquisition.reports.as_list()

    def render_view(self) -> RenderView:
        with self._lock:
            zoom = self._viewport.zoom if self._viewport else None
            categories = set(self._categories)
            reports = self._acquisition.reports.as_list()
        return build_render_view(reports, zoom, categories, self.config.render, icons=self.icons)

    # -- location -----------------------------------------------------------------

    def start(self, geolocation_available: bool = True) -> None:
        """Begin waiting for the first location fix, bounded by the location timeout."""
        if not geolocation_available:
            self.on_location_unavailable("geolocation unavailable")
            return
        timeout = self.config.viewport.location_timeout_seconds
        if timeout <= 0:
            self.on_location_unavailable("no location timeout budget")
            return
        timer = self._timer_factory(timeout, self._on_location_timeout)
        timer.daemon = True
        with self._lock:
            if self._location_resolved:
                return
            self._location_timer = timer
        timer.start()

    def on_location_fix(self, point: GeoPoint, observed_at: datetime | None = None) -> bool:
        """Handle a location fix; returns True when it triggered a fetch or a reset."""
        if observed_at is not None:
            if observed_at.tzinfo is None:
                observed_at = observed_at.replace(tzinfo=UTC)
            age = self._clock() - observed_at.timestamp()
            if age > self.config.viewport.location_max_age_seconds:
                logger.info("Ignoring location fix older than %.0fs (age=%.0fs)", self.config.viewport.location_max_age_seconds, age)
                return False

        with self._lock:
            self._cancel_location_timer()
            if not self._initial_fetch_done:
                self._location_resolved = True
                self._reference = point
                if self._viewport is not None:
                    self._viewport = self._viewport.recentered(point)
                run_initial = self._viewport is not None
                relocate = False
            else:
                reference = self._reference
                moved_m = distance_between_km(reference, point) * 1000 if reference else float("inf")
                run_initial = False
                relocate = moved_m > self.config.viewport.relocation_threshold_m
                if not relocate:
                    logger.debug("Location fix moved %.1fm; below relocation threshold", moved_m)

        if run_initial:
            logger.info("Location fix at (%.5f, %.5f); running initial fetch", point.lat, point.lng)
            self.fetch_now()
            return True
        if relocate:
            self.reset(point)
            return True
        return False

    def on_location_unavailable(self, reason: str = "unavailable") -> None:
        with self._lock:
            self._cancel_location_timer()
            if self._location_resolved:
                return
            self._location_resolved = True
            run_initial = self._viewport is not None and not self._initial_fetch_done
            if run_initial:
                default_center = self.config.viewport.default_center
                self._viewport = self._viewport.recentered(default_center)
                self._reference = default_center
        logger.info("Location unavailable (%s); falling back to default center", reason)
        if run_initial:
            self.fetch_now()

    def _on_location_timeout(self) -> None:
        with self._lock:
            self._location_timer = None
        self.on_location_unavailable("timeout")

    def _cancel_location_timer(self) -> None:
        if self._location_timer is not None:
            self._location_timer.cancel()
            self._location_timer = None

    # -- viewport events ----------------------------------------------------------

    def on_settle(self, viewport: Viewport) -> None:
        with self._lock:
            self._viewport = viewport
            ready = self._location_resolved
        if not ready:
            logger.debug("Settle before location resolved; deferring initial fetch")
            return
        self._debouncer.trigger()

    def on_resize(self, viewport: Viewport | None = None) -> None:
        with self._lock:
            if viewport is not None:
                self._viewport = viewport
            ready = self._location_resolved and self._viewport is not None
        if ready:
            self._debouncer.trigger()

    def on_center_changed(self, center: GeoPoint) -> None:
        with self._lock:
            if self._viewport is not None:
                self._viewport = self._viewport.with_center(center)

    def set_categories(self, categories: Iterable[Category | str]) -> None:
        with self._lock:
            self._categories = {Category.parse(value) for value in categories}

    def _on_debounce_elapsed(self) -> None:
        self.fetch_now()

    # -- cycles -------------------------------------------------------------------

    def _is_current(self, acquisition: AcquisitionState) -> bool:
        with self._lock:
            return acquisition.generation == self._generation

    def fetch_now(self) -> FetchCycleReport | None:
        """Run one fetch cycle unless another is already in flight."""
        if not self._inflight.acquire(blocking=False):
            logger.debug("Fetch cycle already in flight; dropping event")
            return None

        with self._lock:
            # A cycle on the current generation serves any pending refetch.
            self._refetch_pending = False
            viewport = self._viewport
            if viewport is None or not self._location_resolved:
                if self._state == ControllerState.RESET_PENDING:
                    self._state = ControllerState.IDLE
                self._inflight.release()
                logger.debug("No viewport or unresolved location; skipping fetch")
                return None
            acquisition = self._acquisition
            categories = set(self._categories)
            if self._reference is None:
                self._reference = viewport.center
            self._initial_fetch_done = True
            self._state = ControllerState.FETCH_IN_FLIGHT

        report: FetchCycleReport | None = None
        try:
            report = self.pipeline.run_cycle(
                viewport,
                categories,
                acquisition,
                is_current=lambda: self._is_current(acquisition),
            )
        except Exception as exc:
            logger.exception("Fetch cycle gen=%s failed", acquisition.generation)
            self.hooks.emit_error(exc, {"generation": acquisition.generation})
        finally:
            with self._lock:
                rerun = self._refetch_pending
                self._refetch_pending = False
                self._state = ControllerState.IDLE
                if report is not None:
                    self._last_report = report
                # Released under the state lock so reset() never misses a pending refetch.
                self._inflight.release()

        if rerun:
            self.fetch_now()
        return report

    def reset(self, center: GeoPoint | None = None) -> None:
        """Clear all acquisition state atomically and start a fresh cycle."""
        with self._lock:
            self._state = ControllerState.RESET_PENDING
            self._generation += 1
            self._acquisition = AcquisitionState(generation=self._generation)
            if center is not None:
                self._reference = center
                if self._viewport is not None:
                    self._viewport = self._viewport.recentered(center)
            in_flight = self._inflight.locked()
            if in_flight:
                self._refetch_pending = True
            else:
                self._state = ControllerState.IDLE
            generation = self._generation

        self.hooks.emit(HookName.ON_RESET, {"generation": generation}, {"in_flight": in_flight})
        logger.info("Relocation reset to generation %s (in_flight=%s)", generation, in_flight)
        if not in_flight:
            self.fetch_now()

    def close(self) -> None:
        self._debouncer.cancel()
        with self._lock:
            self._cancel_location_timer()
