"""Shared helpers for CLI command modules."""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path

import yaml

from civicmap.config import CivicMapConfig, load_effective_config
from civicmap.models import GeoBounds, GeoPoint, Viewport


def load_yaml_dict(path: str | None) -> dict | None:
    if not path:
        return None
    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping")
    return data


def load_config(args: argparse.Namespace) -> CivicMapConfig:
    config = load_effective_config(
        project_path=args.project_path,
        system_defaults=load_yaml_dict(args.system_config),
        runtime_override=load_yaml_dict(args.runtime_override),
    )
    db_path = getattr(args, "db_path", None)
    if db_path:
        config = config.model_copy(update={"store": config.store.model_copy(update={"sqlite_path": db_path})})
    return config


CONFIG_FLAG_ENV = {
    "project_path": "CIVICMAP_PROJECT_PATH",
    "system_config": "CIVICMAP_SYSTEM_CONFIG",
    "runtime_override": "CIVICMAP_RUNTIME_OVERRIDE",
    "db_path": "CIVICMAP_DB_PATH",
}


def export_config_flags(args: argparse.Namespace) -> None:
    """Mirror the config flags into the environment for processes that only see ``os.environ``."""
    for attr, env_name in CONFIG_FLAG_ENV.items():
        value = getattr(args, attr, None)
        if value:
            os.environ[env_name] = str(value)
        else:
            os.environ.pop(env_name, None)


def load_config_from_env() -> CivicMapConfig:
    values = {attr: os.environ.get(env_name) for attr, env_name in CONFIG_FLAG_ENV.items()}
    values["project_path"] = values["project_path"] or "."
    return load_config(argparse.Namespace(**values))


def require_sqlite(config: CivicMapConfig, command: str) -> None:
    if config.store.backend != "sqlite":
        raise ValueError(f"{command} currently requires store.backend=sqlite")


def add_common_config_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--project-path", default=".", help="Project root holding an optional .civicmap.yaml")
    cmd.add_argument("--system-config", help="Optional system defaults YAML")
    cmd.add_argument("--runtime-override", help="Optional runtime override YAML")
    cmd.add_argument("--db-path", help="Override store.sqlite_path")


def parse_categories(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]


def viewport_from_args(args: argparse.Namespace, config: CivicMapConfig) -> Viewport:
    """Viewport from ``--viewport`` JSON, else a square of ``--span`` degrees around ``--lat/--lng``."""
    if args.viewport:
        return Viewport.model_validate(json.loads(Path(args.viewport).read_text()))

    default = config.viewport.default_center
    center = GeoPoint(
        lat=args.lat if args.lat is not None else default.lat,
        lng=args.lng if args.lng is not None else default.lng,
    )
    half = args.span / 2
    bounds = GeoBounds(
        north_east=GeoPoint(lat=min(90.0, center.lat + half), lng=min(180.0, center.lng + half)),
        south_west=GeoPoint(lat=max(-90.0, center.lat - half), lng=max(-180.0, center.lng - half)),
    )
    zoom = args.zoom if args.zoom is not None else float(config.fetch.default_zoom)
    return Viewport(center=center, bounds=bounds, zoom=zoom)
