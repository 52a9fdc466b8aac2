"""Normalization of raw store documents into Issue and Report models."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from civicmap.models import Category, GeoPoint, Issue, Report, StoreRecord


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort timestamp parsing; ``None`` means the value is unusable.

    Accepts datetimes, ISO-8601 strings, epoch seconds and Firestore-style
    ``{"seconds", "nanoseconds"}`` mappings.
    """
    if isinstance(value, datetime):
        return _aware(value)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return _aware(datetime.fromisoformat(text))
        except ValueError:
            return None
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0))
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            return None
        if isinstance(nanos, bool) or not isinstance(nanos, (int, float)):
            nanos = 0
        return parse_timestamp(seconds + nanos / 1e9)
    return None


def parse_location(value: Any) -> GeoPoint | None:
    if not isinstance(value, dict):
        return None
    lat = _as_float(value.get("lat", value.get("latitude")))
    lng = _as_float(value.get("lng", value.get("longitude")))
    if lat is None or lng is None:
        return None
    try:
        return GeoPoint(lat=lat, lng=lng)
    except ValidationError:
        return None


def issue_from_record(record: StoreRecord) -> Issue:
    fields = record.fields
    geohash = fields.get("geohash")
    return Issue(
        id=record.id,
        location=parse_location(fields.get("location")),
        normalized_heat_score=_as_float(fields.get("normalizedHeatScore")) or 0.0,
        category=Category.parse(fields.get("category")),
        credibility=_as_float(fields.get("credibility")) or 0.0,
        status=str(fields.get("status") or ""),
        geohash=geohash if isinstance(geohash, str) else None,
    )


def report_from_record(record: StoreRecord, issue: Issue) -> Report | None:
    """Build a Report tagged with its parent issue, or ``None`` when it has no usable timestamp."""
    fields = record.fields
    added_at = parse_timestamp(fields.get("addedAt"))
    if added_at is None:
        return None

    lat = _as_float(fields.get("lat"))
    lng = _as_float(fields.get("lng"))
    if (lat is None or lng is None) and issue.location is not None:
        lat, lng = issue.location.lat, issue.location.lng
    if lat is None or lng is None:
        return None

    image_url = fields.get("imageUrl")
    return Report(
        id=record.id,
        issue_id=issue.id,
        summary=str(fields.get("summary") or ""),
        image_url=image_url if isinstance(image_url, str) and image_url else None,
        lat=lat,
        lng=lng,
        added_at=added_at,
        parent_heat_score=issue.normalized_heat_score,
        category=issue.category,
    )
