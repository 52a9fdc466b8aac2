"""Seed loading of issue/report documents into a writable store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from civicmap.models import StoreRecord
from civicmap.normalize import parse_location
from civicmap.partitioner import spatial_key
from civicmap.storage.base import WritableDocumentStore

logger = logging.getLogger(__name__)


@dataclass
class SeedResult:
    issues_loaded: int = 0
    reports_loaded: int = 0
    keys_derived: int = 0
    unlocated_issues: int = 0


def load_documents(path: str | Path) -> list[dict[str, Any]]:
    """Read a JSON or YAML array of issue documents, each with an optional ``reports`` list."""
    source = Path(path)
    text = source.read_text()
    if source.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"Seed file {source} must contain a list of issue documents")
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Seed document #{index} in {source} is not a mapping")
        if not item.get("id"):
            raise ValueError(f"Seed document #{index} in {source} is missing an id")
    return raw


def seed_store(store: WritableDocumentStore, documents: list[dict[str, Any]], precision: int = 10) -> SeedResult:
    result = SeedResult()
    for document in documents:
        fields = dict(document)
        issue_id = str(fields.pop("id"))
        reports = fields.pop("reports", None) or []

        if not fields.get("geohash"):
            location = parse_location(fields.get("location"))
            if location is None:
                result.unlocated_issues += 1
                logger.warning("Issue %s has no location or geohash; it will never match a range query", issue_id)
            else:
                fields["geohash"] = spatial_key(location, precision)
                result.keys_derived += 1

        store.upsert_issue(StoreRecord(id=issue_id, fields=fields))
        result.issues_loaded += 1

        for report in reports:
            if not isinstance(report, dict) or not report.get("id"):
                logger.warning("Skipping report without an id under issue %s", issue_id)
                continue
            report_fields = dict(report)
            report_id = str(report_fields.pop("id"))
            store.upsert_report(issue_id, StoreRecord(id=report_id, fields=report_fields))
            result.reports_loaded += 1

    logger.info(
        "Seeded issues=%s reports=%s derived_keys=%s unlocated=%s",
        result.issues_loaded,
        result.reports_loaded,
        result.keys_derived,
        result.unlocated_issues,
    )
    return result
