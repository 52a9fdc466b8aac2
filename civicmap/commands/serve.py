"""Serve command."""

from __future__ import annotations

import argparse
import logging

import uvicorn

from civicmap.commands.common import export_config_flags, load_config

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace) -> int:
    config = load_config(args)

    logger.info("Starting API on http://%s:%s (store=%s)", args.host, args.port, config.store.backend)
    if args.reload:
        export_config_flags(args)
        uvicorn.run(
            "civicmap.webapp:create_app_from_env",
            host=args.host,
            port=args.port,
            reload=True,
            factory=True,
            log_level=args.log_level.lower(),
        )
    else:
        from civicmap.webapp import create_app

        app = create_app(config)
        uvicorn.run(app, host=args.host, port=args.port, reload=False, log_level=args.log_level.lower())
    return 0
