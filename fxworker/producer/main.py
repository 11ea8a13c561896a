"""
Seed conversion jobs into the tube watched by the workers.

Usage:
    python -m fxworker.producer.main HKD:USD USD:EUR --start-task-id 100
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from fxworker.config import get_settings
from fxworker.db import TubeQueue
from fxworker.exceptions import FxWorkerError
from fxworker.observability.logging import setup_logging

logger = logging.getLogger(__name__)


def parse_pair(value: str) -> tuple[str, str]:
    """
    Parse a ``FROM:TO`` currency pair.

    Raises:
        argparse.ArgumentTypeError: If the value is not two currency codes.
    """
    from_currency, sep, to_currency = value.partition(":")
    from_currency, to_currency = from_currency.strip().upper(), to_currency.strip().upper()
    if not sep or len(from_currency) != 3 or len(to_currency) != 3:
        raise argparse.ArgumentTypeError(f"expected FROM:TO currency codes, got {value!r}")
    return from_currency, to_currency


async def seed_jobs(
    queue: TubeQueue,
    pairs: Sequence[tuple[str, str]],
    start_task_id: int = 1,
) -> list[int]:
    """
    Put one fresh job per currency pair, numbering tasks sequentially.

    Args:
        queue: An initialized queue client.
        pairs: Currency pairs to convert.
        start_task_id: Task ID of the first job.

    Returns:
        Handles of the inserted entries.
    """
    handles = []
    for offset, (from_currency, to_currency) in enumerate(pairs):
        handle = await queue.put_new(start_task_id + offset, from_currency, to_currency)
        handles.append(handle)
    return handles


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed currency conversion jobs.")
    parser.add_argument("pairs", nargs="+", type=parse_pair, metavar="FROM:TO")
    parser.add_argument("--start-task-id", type=int, default=1)
    parser.add_argument("--tube", default=None, help="Defaults to QUEUE_TUBE")
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create the queue tables before seeding",
    )
    return parser


async def run_async(args: argparse.Namespace) -> list[int]:
    settings = get_settings()
    queue = TubeQueue(settings.queue_database_url, args.tube or settings.queue_tube)

    try:
        await queue.init()
        if args.create_schema:
            await queue.database.create_schema()
        return await seed_jobs(queue, args.pairs, args.start_task_id)
    finally:
        await queue.close()


def run(argv: Sequence[str] | None = None) -> None:
    """Run the producer."""
    setup_logging()
    args = build_parser().parse_args(argv)

    try:
        handles = asyncio.run(run_async(args))
    except FxWorkerError:
        logger.exception("Seeding jobs failed")
        sys.exit(1)

    logger.info(f"Seeded {len(handles)} jobs", extra={"handles": handles})


if __name__ == "__main__":
    run()
