from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .config import load_config
from .keeper import KeeperScheduler
from .raffle_client import RaffleClient


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


async def run(args: argparse.Namespace) -> Optional[int]:
    settings = load_config(args.env_file)
    configure_logging(args.verbose)
    logger = logging.getLogger("raffle.keeper")

    keeper_settings = settings.keeper
    client = RaffleClient(keeper_settings)
    scheduler = KeeperScheduler(keeper_settings, client, logger=logger)

    try:
        if args.once or keeper_settings.run_once:
            result = await scheduler.run_once()
            if result:
                logger.info("Keeper started draw request=%s", result.request_id)
                return result.request_id
            return None

        await scheduler.run_forever()
        return None
    finally:
        client.close()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Raffle keeper: starts draws when they are due")
    parser.add_argument("--env-file", type=str, default=None, help="Path to .env file with settings")
    parser.add_argument("--once", action="store_true", help="Check upkeep once and exit.")
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging (default INFO)."
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("Keeper stopped by user.")


if __name__ == "__main__":
    main()
