#!/usr/bin/env python3
"""
main.py
- Command-line entrypoint for ck-rebalance.
- Configures logging (loguru) and optional Sentry reporting, loads the config,
  and runs a single rebalance pass.
- Exits 1 on setup failure, 0 once execution has finished (failed moves are logged).
"""

import argparse
import asyncio
import os
import sys

import sentry_sdk
from loguru import logger

from ckrebalance.core import config as runtime
from ckrebalance.core.config import load_config
from ckrebalance.core.config_loader import preview_yaml
from ckrebalance.core.errors import RebalanceError
from ckrebalance.runner.rebalance import run_rebalance

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(debug=False):
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if debug else "INFO",
        colorize=True,
        format=LOG_FORMAT,
    )


def setup_sentry():
    dsn = os.getenv("SENTRY_DSN")
    if dsn:
        sentry_sdk.init(dsn=dsn, traces_sample_rate=1.0)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="ClickHouse partition rebalancer")
    parser.add_argument("--config", default=runtime.REBALANCE_CONFIG_PATH, help="Path to rebalance YAML config")
    parser.add_argument("--dry-run", action="store_true", help="Print the plan without moving partitions")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    args = parser.parse_args(argv)
    args.dry_run = args.dry_run or runtime.DRY_RUN
    args.debug = args.debug or runtime.DEBUG
    return args


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.debug)
    setup_sentry()

    if args.debug:
        preview_yaml(args.config, name="rebalance config")

    try:
        config = load_config(args.config)
        report = asyncio.run(run_rebalance(config, dry_run=args.dry_run))
    except RebalanceError as e:
        logger.critical(f"[rebalance] Aborting: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("[rebalance] Interrupted.")
        return 130

    if not report.ok:
        logger.warning(f"[rebalance] Finished with failures: {report.summary()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
