"""SQLite document store with an indexed spatial-key column."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Collection
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from civicmap.models import StoreRecord


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class SQLiteDocumentStore:
    """SQLite-backed issue/report documents; one connection per operation so worker threads never share one."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS issues (
                  issue_id TEXT PRIMARY KEY,
                  geohash TEXT,
                  category TEXT,
                  payload_json TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS reports (
                  issue_id TEXT NOT NULL,
                  report_id TEXT NOT NULL,
                  payload_json TEXT NOT NULL,
                  updated_at TEXT NOT NULL,
                  PRIMARY KEY (issue_id, report_id)
                );

                CREATE INDEX IF NOT EXISTS idx_issues_geohash ON issues(geohash);
                CREATE INDEX IF NOT EXISTS idx_issues_geohash_category ON issues(geohash, category);
                """
            )

    def upsert_issue(self, record: StoreRecord) -> None:
        geohash = record.fields.get("geohash")
        category = record.fields.get("category")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO issues(issue_id, geohash, category, payload_json, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(issue_id) DO UPDATE SET
                  geohash=excluded.geohash,
                  category=excluded.category,
                  payload_json=excluded.payload_json,
                  updated_at=excluded.updated_at
                """,
                (
                    record.id,
                    geohash if isinstance(geohash, str) else None,
                    category if isinstance(category, str) else None,
                    json.dumps(record.fields, default=_json_default),
                    datetime.now(UTC).isoformat(),
                ),
            )

    def upsert_report(self, issue_id: str, record: StoreRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO reports(issue_id, report_id, payload_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(issue_id, report_id) DO UPDATE SET
                  payload_json=excluded.payload_json,
                  updated_at=excluded.updated_at
                """,
                (
                    issue_id,
                    record.id,
                    json.dumps(record.fields, default=_json_default),
                    datetime.now(UTC).isoformat(),
                ),
            )

    def query_issues(
        self,
        *,
        low: str,
        high: str,
        categories: Collection[str] | None = None,
    ) -> list[StoreRecord]:
        sql = "SELECT issue_id, payload_json FROM issues WHERE geohash >= ? AND geohash <= ?"
        params: list[Any] = [low, high]
        if categories is not None:
            values = sorted(set(categories))
            if not values:
                return []
            sql += f" AND category IN ({','.join('?' for _ in values)})"
            params.extend(values)
        sql += " ORDER BY geohash, issue_id"
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [StoreRecord(id=row["issue_id"], fields=json.loads(row["payload_json"])) for row in rows]

    def list_reports(self, issue_id: str) -> list[StoreRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT report_id, payload_json FROM reports WHERE issue_id = ? ORDER BY report_id",
                (issue_id,),
            ).fetchall()
        return [StoreRecord(id=row["report_id"], fields=json.loads(row["payload_json"])) for row in rows]

    def counts(self) -> dict[str, int]:
        with self._connect() as conn:
            issues = conn.execute("SELECT COUNT(*) AS n FROM issues").fetchone()["n"]
            reports = conn.execute("SELECT COUNT(*) AS n FROM reports").fetchone()["n"]
        return {"issues": int(issues), "reports": int(reports)}
