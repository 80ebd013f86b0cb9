from __future__ import annotations

import logging
import sys

from apps.cli.commands.enqueue import EnqueueCli
from apps.cli.commands.ingest import IngestCli

_USAGE = (
    "Usage:\n"
    "  price-history ingest --key KEY --start YYYY-MM-DD [--force-refresh] [args...]\n"
    "  price-history enqueue --key KEY --start YYYY-MM-DD [--force-refresh] [args...]\n"
)


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    _configure_logging()
    args = argv if argv is not None else sys.argv[1:]

    if not args:
        print(_USAGE)
        return 2

    cmd = args[0]
    rest = args[1:]

    if cmd == "ingest":
        return IngestCli().run(rest)
    if cmd == "enqueue":
        return EnqueueCli().run(rest)

    print(f"unknown command: {cmd}\n\n{_USAGE}", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
