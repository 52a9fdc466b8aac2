"""Renderer-facing view model for the working report set."""

from __future__ import annotations

import random
import threading
from collections.abc import Collection, Iterable
from urllib.parse import quote

from civicmap.config import RenderConfig
from civicmap.models import Category, HeatmapPoint, MarkerView, RenderMode, RenderView, Report

CATEGORY_STYLES: dict[Category, dict[str, str]] = {
    Category.SANITATION: {"name": "Sanitation", "color": "#8B4513", "emoji": "\U0001f5d1️"},
    Category.ROAD_DAMAGE: {"name": "Road Damage", "color": "#708090", "emoji": "\U0001f6a7"},
    Category.TRAFFIC: {"name": "Traffic", "color": "#FF4500", "emoji": "\U0001f6a6"},
    Category.WATER: {"name": "Water", "color": "#1E90FF", "emoji": "\U0001f4a7"},
    Category.LIGHTING: {"name": "Lighting", "color": "#FFD700", "emoji": "\U0001f4a1"},
    Category.WEATHER: {"name": "Weather", "color": "#4682B4", "emoji": "☁️"},
    Category.EVENT: {"name": "Event", "color": "#FF69B4", "emoji": "\U0001f389"},
    Category.SAFETY: {"name": "Safety", "color": "#DC143C", "emoji": "\U0001f6e1️"},
    Category.OTHER: {"name": "Other", "color": "#B0B0B0", "emoji": "❓"},
}

HEATMAP_GRADIENT = [
    "rgba(54, 212, 206, 0)",
    "rgba(54, 212, 206, 1)",
    "rgba(122, 225, 172, 1)",
    "rgba(255, 225, 107, 1)",
    "rgba(255, 150, 77, 1)",
    "rgba(255, 82, 82, 1)",
]

_MARKER_SVG = (
    '<svg width="38" height="38" viewBox="0 0 38 38" fill="none" xmlns="http://www.w3.org/2000/svg">'
    '<path d="M19 0C10.178 0 3 7.178 3 16.001C3 24.824 16.668 37.118 19 38C21.332 37.118 35 24.824 35 16.001'
    'C35 7.178 27.822 0 19 0Z" fill="{color}" stroke="#FFFFFF" stroke-width="2"/>'
    '<foreignObject x="10" y="8" width="18" height="18">'
    '<div xmlns="http://www.w3.org/1999/xhtml" style="width: 18px; height: 18px; display: flex; '
    'align-items: center; justify-content: center; font-size: 14px; line-height: 1;">{emoji}</div>'
    "</foreignObject></svg>"
)


def choose_render_mode(zoom: float | None, threshold: float) -> RenderMode:
    if zoom is not None and zoom > threshold:
        return RenderMode.MARKERS
    return RenderMode.HEATMAP


def jitter_positions(
    reports: Iterable[Report],
    jitter: float,
    rng: random.Random | None = None,
) -> dict[tuple[str, str], tuple[float, float]]:
    """Offset each report by up to ``jitter / 2`` degrees so co-located markers stay clickable."""
    rand = rng or random.Random()
    positions: dict[tuple[str, str], tuple[float, float]] = {}
    for report in reports:
        lat = report.lat + (rand.random() - 0.5) * jitter
        lng = report.lng + (rand.random() - 0.5) * jitter
        positions[report.key] = (lat, lng)
    return positions


class MarkerIconCache:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._icons: dict[Category, str] = {}

    def icon_for(self, category: Category | str) -> str:
        parsed = Category.parse(category)
        with self._lock:
            cached = self._icons.get(parsed)
            if cached is not None:
                return cached
            style = CATEGORY_STYLES[parsed]
            svg = _MARKER_SVG.format(color=style["color"], emoji=style["emoji"])
            data_uri = "data:image/svg+xml;charset=UTF-8," + quote(svg, safe="")
            self._icons[parsed] = data_uri
            return data_uri

    def __len__(self) -> int:
        with self._lock:
            return len(self._icons)


def build_render_view(
    reports: Iterable[Report],
    zoom: float | None,
    categories: Collection[Category | str],
    config: RenderConfig,
    icons: MarkerIconCache | None = None,
    rng: random.Random | None = None,
) -> RenderView:
    active = {Category.parse(value) for value in categories}
    visible = [report for report in reports if report.category in active]
    mode = choose_render_mode(zoom, config.heatmap_zoom_threshold)
    view = RenderView(
        mode=mode,
        zoom=zoom,
        categories=sorted(active, key=lambda category: category.value),
        report_count=len(visible),
    )
    if mode == RenderMode.HEATMAP:
        view.heatmap = [HeatmapPoint(lat=r.lat, lng=r.lng, weight=r.parent_heat_score) for r in visible]
        return view

    cache = icons or MarkerIconCache()
    positions = jitter_positions(visible, config.jitter_degrees, rng=rng)
    for report in visible:
        lat, lng = positions[report.key]
        view.markers.append(
            MarkerView(
                id=report.id,
                issue_id=report.issue_id,
                lat=lat,
                lng=lng,
                category=report.category,
                icon=cache.icon_for(report.category),
                summary=report.summary,
                image_url=report.image_url,
                added_at=report.added_at,
            )
        )
    return view
