"""Seed command."""

from __future__ import annotations

import argparse
import logging

from civicmap.commands.common import load_config, require_sqlite
from civicmap.loader import load_documents, seed_store
from civicmap.storage import SQLiteDocumentStore

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace) -> int:
    config = load_config(args)
    require_sqlite(config, "seed")

    documents = load_documents(args.input)
    store = SQLiteDocumentStore(config.store.sqlite_path)
    result = seed_store(store, documents, precision=config.store.geohash_precision)
    counts = store.counts()
    logger.info(
        "Seed done db=%s loaded(issues=%s reports=%s) totals(issues=%s reports=%s)",
        config.store.sqlite_path,
        result.issues_loaded,
        result.reports_loaded,
        counts["issues"],
        counts["reports"],
    )
    return 0
