import random
from datetime import UTC, datetime

from civicmap.config import RenderConfig
from civicmap.models import Category, RenderMode, Report
from civicmap.render import MarkerIconCache, build_render_view, choose_render_mode, jitter_positions


def _report(issue_id: str, report_id: str, category: Category, heat: float = 0.5) -> Report:
    return Report(
        id=report_id,
        issue_id=issue_id,
        summary=f"{category.value} report",
        lat=12.9716,
        lng=77.5946,
        added_at=datetime(2024, 5, 1, tzinfo=UTC),
        parent_heat_score=heat,
        category=category,
    )


def test_render_mode_switches_above_threshold() -> None:
    assert choose_render_mode(None, 16) == RenderMode.HEATMAP
    assert choose_render_mode(12, 16) == RenderMode.HEATMAP
    assert choose_render_mode(16, 16) == RenderMode.HEATMAP
    assert choose_render_mode(16.5, 16) == RenderMode.MARKERS


def test_jitter_stays_within_half_jitter_and_separates_colocated_reports() -> None:
    reports = [_report("a", "r1", Category.WATER), _report("b", "r1", Category.WATER)]

    positions = jitter_positions(reports, 0.00003, rng=random.Random(7))

    assert set(positions) == {("a", "r1"), ("b", "r1")}
    for lat, lng in positions.values():
        assert abs(lat - 12.9716) <= 0.000015
        assert abs(lng - 77.5946) <= 0.000015
    assert positions[("a", "r1")] != positions[("b", "r1")]


def test_marker_icons_are_memoized_per_category() -> None:
    icons = MarkerIconCache()

    water = icons.icon_for(Category.WATER)

    assert water.startswith("data:image/svg+xml;charset=UTF-8,")
    assert "%231E90FF" in water
    assert icons.icon_for("water") is water
    assert icons.icon_for("unknown-category") == icons.icon_for(Category.OTHER)
    assert len(icons) == 2


def test_heatmap_view_filters_categories_and_weights_by_parent_heat() -> None:
    reports = [
        _report("a", "r1", Category.WATER, heat=0.9),
        _report("b", "r1", Category.SAFETY, heat=0.2),
    ]

    view = build_render_view(reports, 12, {Category.WATER}, RenderConfig())

    assert view.mode == RenderMode.HEATMAP
    assert view.report_count == 1
    assert [point.weight for point in view.heatmap] == [0.9]
    assert view.markers == []


def test_marker_view_uses_jittered_positions_and_icons() -> None:
    reports = [_report("a", "r1", Category.TRAFFIC), _report("a", "r2", Category.TRAFFIC)]
    icons = MarkerIconCache()

    view = build_render_view(reports, 17, ["traffic"], RenderConfig(), icons=icons, rng=random.Random(1))

    assert view.mode == RenderMode.MARKERS
    assert view.heatmap == []
    assert [(marker.issue_id, marker.id) for marker in view.markers] == [("a", "r1"), ("a", "r2")]
    assert {marker.icon for marker in view.markers} == {icons.icon_for(Category.TRAFFIC)}
    assert all(marker.lat != 12.9716 for marker in view.markers)
