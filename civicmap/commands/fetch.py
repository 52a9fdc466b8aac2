"""One-shot fetch cycle command."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from civicmap.commands.common import load_config, parse_categories, require_sqlite, viewport_from_args
from civicmap.controller import ViewportController
from civicmap.storage import SQLiteDocumentStore

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace) -> int:
    config = load_config(args)
    require_sqlite(config, "fetch")

    store = SQLiteDocumentStore(config.store.sqlite_path)
    controller = ViewportController(config, store)
    categories = parse_categories(args.categories)
    if categories is not None:
        controller.set_categories(categories)

    viewport = viewport_from_args(args, config)
    controller.on_settle(viewport)
    # The requested center stands in for the location fix and runs the initial cycle.
    controller.on_location_fix(viewport.center)
    controller.close()

    report = controller.last_report
    if report is None:
        logger.error("Fetch cycle did not complete")
        return 1

    payload = {
        "report": report.model_dump(mode="json"),
        "view": controller.render_view().model_dump(mode="json"),
    }
    text = json.dumps(payload, indent=2)
    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text + "\n")
    else:
        print(text)
    logger.info(
        "Fetch done partitions=%s issues_admitted=%s reports=%s",
        report.new_partitions,
        report.issues_admitted,
        report.reports_added,
    )
    return 0
