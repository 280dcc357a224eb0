#!/usr/bin/env python3
"""Run one ingestion / dispatch / reset / status pass from a system scheduler"""

import sys
import json
import asyncio
import argparse
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import ConfigError, get_settings
from app.logging_config import setup_logging
from clients.registry import get_registry
from pipeline import Dispatcher, Ingestor, Reporter


async def run(command: str, include_sent: bool | None) -> dict:
    registry = get_registry()
    await registry.connect()
    try:
        if command == "ingest":
            return (await Ingestor(registry).run()).model_dump(mode="json")
        if command == "dispatch":
            summary = await Dispatcher(registry).run(include_sent=include_sent, trigger="scheduled")
            return summary.model_dump(mode="json")
        if command == "reset":
            return {"reset_count": await Dispatcher(registry).reset()}
        return (await Reporter(registry).cron_status()).model_dump(mode="json")
    finally:
        await registry.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=["ingest", "dispatch", "reset", "status"])
    parser.add_argument("--include-sent", action="store_true", default=None,
                        help="dispatch: also email companies already marked Sent")
    args = parser.parse_args(argv)

    setup_logging()
    try:
        get_settings().require()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    result = asyncio.run(run(args.command, args.include_sent))
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
