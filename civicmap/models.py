"""Core Pydantic domain models for civicmap."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Category(str, Enum):
    SANITATION = "sanitation"
    ROAD_DAMAGE = "road_damage"
    TRAFFIC = "traffic"
    WATER = "water"
    LIGHTING = "lighting"
    WEATHER = "weather"
    EVENT = "event"
    SAFETY = "safety"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> Category:
        """Map a raw category field onto the enumeration, defaulting to ``other``."""
        if isinstance(value, Category):
            return value
        if not isinstance(value, str):
            return cls.OTHER
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER


ALL_CATEGORIES: frozenset[Category] = frozenset(Category)


class ControllerState(str, Enum):
    IDLE = "idle"
    FETCH_IN_FLIGHT = "fetch_in_flight"
    RESET_PENDING = "reset_pending"


class RenderMode(str, Enum):
    HEATMAP = "heatmap"
    MARKERS = "markers"


class GeoPoint(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lng)


class GeoBounds(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    north_east: GeoPoint
    south_west: GeoPoint


class Viewport(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    center: GeoPoint
    bounds: GeoBounds
    zoom: float | None = None

    def recentered(self, center: GeoPoint) -> Viewport:
        """Shift the bounds so they keep their span around a new center."""
        d_lat = center.lat - self.center.lat
        d_lng = center.lng - self.center.lng
        ne = self.bounds.north_east
        sw = self.bounds.south_west
        bounds = GeoBounds(
            north_east=GeoPoint(lat=_clamp(ne.lat + d_lat, -90.0, 90.0), lng=_clamp(ne.lng + d_lng, -180.0, 180.0)),
            south_west=GeoPoint(lat=_clamp(sw.lat + d_lat, -90.0, 90.0), lng=_clamp(sw.lng + d_lng, -180.0, 180.0)),
        )
        return Viewport(center=center, bounds=bounds, zoom=self.zoom)

    def with_center(self, center: GeoPoint) -> Viewport:
        return Viewport(center=center, bounds=self.bounds, zoom=self.zoom)

    def zoom_tier(self, default: int) -> int:
        if self.zoom is None or not math.isfinite(self.zoom):
            return default
        return int(math.floor(self.zoom))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class Partition(BaseModel):
    """One inclusive ``[low, high]`` spatial-key range."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    low: str
    high: str

    def contains(self, key: str) -> bool:
        return self.low <= key <= self.high


class PartitionKey(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    zoom_tier: int
    low: str
    high: str

    @classmethod
    def of(cls, zoom_tier: int, partition: Partition) -> PartitionKey:
        return cls(zoom_tier=zoom_tier, low=partition.low, high=partition.high)


class StoreRecord(BaseModel):
    """A raw ``{id, fields}`` document as returned by a document store."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    fields: dict[str, Any] = Field(default_factory=dict)


class Issue(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    location: GeoPoint | None = None
    normalized_heat_score: float = 0.0
    category: Category = Category.OTHER
    credibility: float = 0.0
    status: str = ""
    geohash: str | None = None


class Report(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    issue_id: str
    summary: str = ""
    image_url: str | None = None
    lat: float
    lng: float
    added_at: datetime
    parent_heat_score: float = 0.0
    category: Category = Category.OTHER

    @property
    def key(self) -> tuple[str, str]:
        return (self.issue_id, self.id)


class QualityDecision(BaseModel):
    model_config = ConfigDict(extra="forbid")

    issue_id: str
    admitted: bool
    reason_codes: list[str] = Field(default_factory=list)


class FetchCycleReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    generation: int
    zoom_tier: int
    radius_m: float = 0.0
    candidate_partitions: int = 0
    new_partitions: int = 0
    failed_partitions: int = 0
    issues_fetched: int = 0
    issues_malformed: int = 0
    issues_admitted: int = 0
    issues_rejected: int = 0
    issues_failed: int = 0
    reports_fetched: int = 0
    reports_dropped: int = 0
    reports_added: int = 0
    skipped: bool = False
    discarded: bool = False
    admitted_issue_ids: list[str] = Field(default_factory=list)
    profile: dict[str, Any] = Field(default_factory=dict)


class HeatmapPoint(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lat: float
    lng: float
    weight: float


class MarkerView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    issue_id: str
    lat: float
    lng: float
    category: Category
    icon: str
    summary: str = ""
    image_url: str | None = None
    added_at: datetime


class RenderView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: RenderMode
    zoom: float | None = None
    categories: list[Category] = Field(default_factory=list)
    report_count: int = 0
    heatmap: list[HeatmapPoint] = Field(default_factory=list)
    markers: list[MarkerView] = Field(default_factory=list)
