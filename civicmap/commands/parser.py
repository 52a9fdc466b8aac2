"""CLI parser construction."""

from __future__ import annotations

import argparse

from civicmap.commands.common import add_common_config_flags


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="civicmap incremental map data acquisition")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Load issue/report documents from JSON or YAML into SQLite")
    seed.add_argument("--input", required=True, help="Path to a JSON/YAML array of issue documents")
    add_common_config_flags(seed)

    fetch = sub.add_parser("fetch", help="Run one fetch cycle for a viewport and emit the render view")
    fetch.add_argument("--viewport", help="Path to a viewport JSON document (center, bounds, zoom)")
    fetch.add_argument("--lat", type=float, help="Viewport center latitude (default: viewport.default_center)")
    fetch.add_argument("--lng", type=float, help="Viewport center longitude (default: viewport.default_center)")
    fetch.add_argument("--zoom", type=float, help="Map zoom level (default: fetch.default_zoom)")
    fetch.add_argument("--span", type=float, default=0.05, help="Viewport width/height in degrees")
    fetch.add_argument("--categories", help="Comma-separated category filter (default: all)")
    fetch.add_argument("--output", help="Write JSON output here instead of stdout")
    add_common_config_flags(fetch)

    serve = sub.add_parser("serve", help="Run the HTTP API for a map client")
    serve.add_argument("--host", default="127.0.0.1", help="Bind host")
    serve.add_argument("--port", type=int, default=8765, help="Bind port")
    serve.add_argument(
        "--reload",
        action="store_true",
        help="Enable uvicorn auto-reload (development only)",
    )
    add_common_config_flags(serve)

    return parser
