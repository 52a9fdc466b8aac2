"""Configuration models and loading for civicmap."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from civicmap.models import GeoPoint

PROJECT_CONFIG_NAME = ".civicmap.yaml"


class FetchConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    radius_multiplier: float = Field(default=1000.0, gt=0.0)
    max_range_workers: int = Field(default=8, ge=1)
    max_report_workers: int = Field(default=16, ge=1)
    default_zoom: int = 12


class QualityConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    min_credibility: float = Field(default=0.5, ge=0.0, le=1.0)
    eligible_status: str = "open"


class ViewportConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    debounce_seconds: float = Field(default=0.3, ge=0.0)
    default_center: GeoPoint = Field(default_factory=lambda: GeoPoint(lat=12.9716, lng=77.5946))
    location_timeout_seconds: float = Field(default=10.0, ge=0.0)
    location_max_age_seconds: float = Field(default=300.0, ge=0.0)
    relocation_threshold_m: float = Field(default=25.0, ge=0.0)


class RenderConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    heatmap_zoom_threshold: float = 16
    jitter_degrees: float = Field(default=0.00003, ge=0.0)
    heatmap_radius: int = 25
    heatmap_opacity: float = Field(default=0.8, ge=0.0, le=1.0)
    heatmap_max_intensity: float = 1.0
    map_api_key_env: str = "CIVICMAP_MAPS_API_KEY"


class StoreConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    backend: str = "sqlite"
    sqlite_path: str = ".civicmap/civicmap.db"
    geohash_precision: int = Field(default=10, ge=1, le=22)


class CivicMapConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping")
    return data


def load_effective_config(
    project_path: str | Path = ".",
    system_defaults: dict[str, Any] | None = None,
    runtime_override: dict[str, Any] | None = None,
) -> CivicMapConfig:
    """Load config with precedence runtime > project .civicmap.yaml > system."""
    project_config = _load_yaml(Path(project_path) / PROJECT_CONFIG_NAME)

    merged: dict[str, Any] = {}
    if system_defaults:
        merged = _deep_merge(merged, system_defaults)
    if project_config:
        merged = _deep_merge(merged, project_config)
    if runtime_override:
        merged = _deep_merge(merged, runtime_override)

    return CivicMapConfig.model_validate(merged)
