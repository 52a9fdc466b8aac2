from civicmap.config import CivicMapConfig
from civicmap.hooks import HookManager, HookName
from civicmap.models import GeoBounds, GeoPoint, Partition, StoreRecord, Viewport
from civicmap.partitioner import spatial_key
from civicmap.pipeline import FetchPipeline
from civicmap.state import AcquisitionState
from civicmap.storage import MemoryDocumentStore

P1 = Partition(low="a0", high="a5")
P2 = Partition(low="a1", high="b5")


def _viewport(zoom: float = 14) -> Viewport:
    return Viewport(
        center=GeoPoint(lat=12.9716, lng=77.5946),
        bounds=GeoBounds(north_east=GeoPoint(lat=12.9816, lng=77.6046), south_west=GeoPoint(lat=12.9616, lng=77.5846)),
        zoom=zoom,
    )


def _store() -> MemoryDocumentStore:
    store = MemoryDocumentStore()
    store.upsert_issue(
        StoreRecord(
            id="A",
            fields={
                "geohash": "a1",
                "location": {"lat": 12.972, "lng": 77.595},
                "credibility": 0.6,
                "status": "open",
                "category": "road_damage",
                "normalizedHeatScore": 0.8,
            },
        )
    )
    store.upsert_issue(
        StoreRecord(
            id="B",
            fields={"geohash": "b1", "location": {"lat": 12.973, "lng": 77.596}, "credibility": 0.3, "status": "open"},
        )
    )
    store.upsert_report("A", StoreRecord(id="r1", fields={"addedAt": "2024-05-01T10:00:00Z", "summary": "Pothole"}))
    store.upsert_report("A", StoreRecord(id="r2", fields={"addedAt": "2024-05-02T10:00:00Z", "lat": 12.9721, "lng": 77.5951}))
    store.upsert_report("B", StoreRecord(id="r1", fields={"addedAt": "2024-05-01T10:00:00Z"}))
    return store


def _pipeline(store: MemoryDocumentStore, hooks: HookManager | None = None) -> FetchPipeline:
    return FetchPipeline(CivicMapConfig(), store, hooks=hooks, partitioner=lambda viewport, radius_m: [P1, P2])


def test_cycle_admits_only_eligible_issues_once() -> None:
    state = AcquisitionState()
    report = _pipeline(_store()).run_cycle(_viewport(), None, state)

    assert report.new_partitions == 2
    assert report.issues_fetched == 2
    assert report.issues_admitted == 1
    assert report.issues_rejected == 1
    assert report.admitted_issue_ids == ["A"]
    assert report.reports_added == 2
    assert state.issues.ids() == {"A"}
    assert state.reports.keys() == {("A", "r1"), ("A", "r2")}
    assert all(item.parent_heat_score == 0.8 for item in state.reports.as_list())


def test_repeated_cycle_fetches_each_partition_at_most_once() -> None:
    state = AcquisitionState()
    pipeline = _pipeline(_store())
    pipeline.run_cycle(_viewport(), None, state)

    second = pipeline.run_cycle(_viewport(), None, state)

    assert second.skipped is True
    assert second.new_partitions == 0
    assert len(state.reports) == 2


def test_new_zoom_tier_refetches_ranges_without_duplicating_reports() -> None:
    state = AcquisitionState()
    pipeline = _pipeline(_store())
    pipeline.run_cycle(_viewport(zoom=14), None, state)

    zoomed = pipeline.run_cycle(_viewport(zoom=15.4), None, state)

    assert zoomed.zoom_tier == 15
    assert zoomed.new_partitions == 2
    assert zoomed.issues_admitted == 0
    assert len(state.reports) == 2


def test_stale_cycle_does_not_merge() -> None:
    state = AcquisitionState()
    report = _pipeline(_store()).run_cycle(_viewport(), None, state, is_current=lambda: False)

    assert report.discarded is True
    assert report.reports_added == 0
    assert len(state.reports) == 0


def test_pipeline_emits_lifecycle_hooks_in_order() -> None:
    calls: list[str] = []
    hooks = HookManager()
    for name in HookName:
        hooks.register(name, lambda ctx, env, name=name: calls.append(name.value) or None)

    _pipeline(_store(), hooks).run_cycle(_viewport(), None, AcquisitionState())

    assert calls == [
        "before_cycle",
        "after_partition",
        "after_dedup",
        "after_fetch",
        "after_quality",
        "after_aggregate",
        "after_merge",
    ]


def test_default_partitioner_fetches_nearby_issues_from_store() -> None:
    store = MemoryDocumentStore()
    nearby = GeoPoint(lat=12.972, lng=77.595)
    store.upsert_issue(
        StoreRecord(
            id="near",
            fields={"geohash": spatial_key(nearby), "location": nearby.model_dump(), "credibility": 0.9, "status": "open"},
        )
    )
    store.upsert_report("near", StoreRecord(id="r1", fields={"addedAt": 1714557600}))

    state = AcquisitionState()
    report = FetchPipeline(CivicMapConfig(), store).run_cycle(_viewport(), None, state)

    assert report.issues_admitted == 1
    assert state.reports.keys() == {("near", "r1")}
