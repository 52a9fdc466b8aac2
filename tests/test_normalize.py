from datetime import UTC, datetime

import pytest

from civicmap.models import Category, GeoPoint, StoreRecord
from civicmap.normalize import issue_from_record, parse_location, parse_timestamp, report_from_record


@pytest.mark.parametrize(
    "value",
    [
        datetime(2024, 5, 1, 10, 0, tzinfo=UTC),
        "2024-05-01T10:00:00Z",
        "2024-05-01T10:00:00+00:00",
        1714557600,
        1714557600.0,
        {"seconds": 1714557600, "nanoseconds": 0},
        {"_seconds": 1714557600, "_nanoseconds": 0},
    ],
)
def test_parse_timestamp_accepts_common_encodings(value) -> None:
    assert parse_timestamp(value) == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)


@pytest.mark.parametrize("value", [None, "", "yesterday", True, float("nan"), {"seconds": "x"}, ["2024"]])
def test_parse_timestamp_rejects_unusable_values(value) -> None:
    assert parse_timestamp(value) is None


def test_parse_timestamp_assumes_utc_for_naive_values() -> None:
    parsed = parse_timestamp("2024-05-01T10:00:00")
    assert parsed is not None
    assert parsed.tzinfo is not None


def test_parse_location_accepts_both_field_spellings() -> None:
    assert parse_location({"lat": 12.97, "lng": 77.59}) == GeoPoint(lat=12.97, lng=77.59)
    assert parse_location({"latitude": 12.97, "longitude": 77.59}) == GeoPoint(lat=12.97, lng=77.59)
    assert parse_location({"lat": 95.0, "lng": 77.59}) is None
    assert parse_location("12.97,77.59") is None


def test_issue_from_record_defaults_missing_fields() -> None:
    issue = issue_from_record(
        StoreRecord(
            id="issue-1",
            fields={"location": {"lat": 12.97, "lng": 77.59}, "category": "Water", "credibility": "0.8", "status": "open"},
        )
    )
    assert issue.category == Category.WATER
    assert issue.credibility == pytest.approx(0.8)
    assert issue.normalized_heat_score == 0.0
    assert issue.geohash is None

    unknown = issue_from_record(StoreRecord(id="issue-2", fields={"category": "potholes"}))
    assert unknown.category == Category.OTHER
    assert unknown.location is None


def test_report_from_record_tags_parent_issue() -> None:
    issue = issue_from_record(
        StoreRecord(
            id="issue-1",
            fields={"location": {"lat": 12.97, "lng": 77.59}, "category": "traffic", "normalizedHeatScore": 0.7},
        )
    )
    report = report_from_record(
        StoreRecord(id="r1", fields={"summary": "Signal out", "lat": 12.971, "lng": 77.591, "addedAt": "2024-05-01T10:00:00Z"}),
        issue,
    )
    assert report is not None
    assert report.key == ("issue-1", "r1")
    assert report.parent_heat_score == pytest.approx(0.7)
    assert report.category == Category.TRAFFIC
    assert (report.lat, report.lng) == (12.971, 77.591)


def test_report_without_position_falls_back_to_issue_location() -> None:
    issue = issue_from_record(StoreRecord(id="issue-1", fields={"location": {"lat": 12.97, "lng": 77.59}}))
    report = report_from_record(StoreRecord(id="r1", fields={"addedAt": 1714557600}), issue)
    assert report is not None
    assert (report.lat, report.lng) == (12.97, 77.59)

    homeless = issue_from_record(StoreRecord(id="issue-2", fields={}))
    assert report_from_record(StoreRecord(id="r2", fields={"addedAt": 1714557600}), homeless) is None


def test_report_without_timestamp_is_dropped() -> None:
    issue = issue_from_record(StoreRecord(id="issue-1", fields={"location": {"lat": 12.97, "lng": 77.59}}))
    assert report_from_record(StoreRecord(id="r1", fields={"addedAt": "not a date"}), issue) is None
    assert report_from_record(StoreRecord(id="r2", fields={}), issue) is None
