from __future__ import annotations

import argparse
import asyncio
import sys

from pydantic import ValidationError

from reqlog.config import get_settings
from reqlog.models.schemas import LogEntry, parse_entries
from reqlog.observability.logging import configure_logging
from reqlog.services.bulk_insert import build_bulk_inserter
from reqlog.services.flush import send_logs_to_db
from reqlog.storage import KVStore, build_storage


async def _load(storage: KVStore, file_name: str) -> list[LogEntry] | None:
    try:
        return parse_entries(await storage.get_item(file_name))
    except (ValidationError, ValueError) as exc:
        first_line = str(exc).splitlines()[0] if str(exc) else exc.__class__.__name__
        print(f"{file_name}: stored batch is not readable ({first_line})", file=sys.stderr)
        return None


async def _show() -> int:
    settings = get_settings()
    entries = await _load(build_storage(settings), settings.log_file_name)
    if entries is None:
        return 1
    print(f"{settings.log_file_name}: {len(entries)} stored entries")
    return 0


async def _flush() -> int:
    settings = get_settings()
    storage = build_storage(settings)
    entries = await _load(storage, settings.log_file_name)
    if entries is None:
        return 1
    if not entries:
        print(f"{settings.log_file_name}: nothing to flush")
        return 0

    result = await send_logs_to_db(entries, build_bulk_inserter(settings))
    if not result.ok:
        print(f"{settings.log_file_name}: insert failed ({result.error}); stored batch kept", file=sys.stderr)
        return 1

    await storage.remove_item(settings.log_file_name)
    print(f"{settings.log_file_name}: flushed {result.count} entries")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect or drain the persisted request-log batch")
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("show", help="Print how many entries the stored batch holds")
    subcommands.add_parser("flush", help="Send the stored batch to the database sink regardless of size")
    args = parser.parse_args(argv)

    configure_logging(get_settings().log_level.upper())
    if args.command == "show":
        return asyncio.run(_show())
    return asyncio.run(_flush())


if __name__ == "__main__":
    raise SystemExit(main())
