"""CLI entrypoint for civicmap."""

from __future__ import annotations

import argparse
from collections.abc import Callable

from civicmap.commands import fetch, seed, serve
from civicmap.commands.parser import build_parser
from civicmap.logging_utils import configure_logging

COMMANDS: dict[str, Callable[[argparse.Namespace], int]] = {
    "seed": seed.run,
    "fetch": fetch.run,
    "serve": serve.run,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
