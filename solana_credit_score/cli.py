"""Command line entry point: rank validators by staker credits for an epoch."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .chain import ChainDataSource
from .config import CONFIG_FILENAME, Settings, build_settings, load_config
from .errors import ConfigurationError, CreditScoreError, RPCError
from .notifier import Notifier
from .pipeline import run_credit_score
from .report import render_console_output, render_text, write_csv_output, write_json_output
from .rpc import SolanaRPCClient


LOGGER_NAME = "solana_credit_score"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solana-credit-score",
        description="Rank Solana validators by epoch credits earned for their stakers.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "epoch",
        nargs="?",
        type=int,
        metavar="EPOCH",
        help="Epoch to process. Negative values are permitted, e.g. -1 means the previous epoch "
        "[default: the current, incomplete, epoch]",
    )
    parser.add_argument("-C", "--config", type=Path, help=f"Configuration file to use [default: ./{CONFIG_FILENAME}]")
    parser.add_argument(
        "-u",
        "--url",
        dest="rpc_endpoints",
        action="append",
        metavar="URL",
        help="JSON RPC URL or moniker (mainnet-beta, testnet, devnet, localhost); may be repeated",
    )
    parser.add_argument("-n", "--num", type=int, metavar="N", help="Limit output to the top N validators")
    parser.add_argument(
        "-p",
        "--percentile",
        dest="min_percentile",
        type=int,
        metavar="P",
        help="Limit output to the validators in the Pth percentile and above [default: 0]",
    )
    parser.add_argument(
        "-i",
        "--ignore-commission",
        dest="ignore_commission",
        action="store_true",
        default=None,
        help="Ignore validator commission",
    )
    parser.add_argument(
        "--no-rewards",
        dest="estimate_rewards",
        action="store_false",
        default=None,
        help="Skip the inflation reward estimate for the current epoch",
    )
    parser.add_argument(
        "-o",
        "--output-format",
        dest="output_format",
        metavar="FORMATS",
        help="Comma separated output formats: console, json, csv",
    )
    parser.add_argument("--log-level", dest="log_level", help="Logging level [default: WARNING]")
    return parser


def resolve_settings(args: argparse.Namespace) -> Settings:
    if args.config is not None:
        file_config = load_config(args.config, required=True)
    else:
        file_config = load_config(Path.cwd() / CONFIG_FILENAME)
    overrides: Dict[str, Any] = {
        key: getattr(args, key)
        for key in (
            "rpc_endpoints",
            "epoch",
            "num",
            "min_percentile",
            "ignore_commission",
            "estimate_rewards",
            "output_format",
            "log_level",
        )
    }
    return build_settings(file_config, overrides)


async def run(settings: Settings) -> None:
    logger = logging.getLogger(LOGGER_NAME)
    logger.info("JSON RPC URL: %s", settings.rpc_endpoints[0])

    async with SolanaRPCClient(
        settings.rpc_endpoints,
        timeout=settings.request_timeout,
        max_retries=settings.max_rpc_retries,
    ) as client:
        report = await run_credit_score(ChainDataSource(client), settings, logger)

    if "console" in settings.output_format:
        render_console_output(report, logger)
    if "json" in settings.output_format:
        write_json_output(Path(settings.json_output_file), report, logger)
    if "csv" in settings.output_format:
        write_csv_output(Path(settings.csv_output_file), report, logger)

    notifier = Notifier(settings.discord_webhook, settings.slack_webhook)
    if not notifier.is_empty and report.entries:
        await notifier.send(f"```Epoch {report.epoch}\n{render_text(report)}```")


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logger = logging.getLogger(LOGGER_NAME)
    try:
        settings = resolve_settings(args)
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error("Fatal error: %s", exc)
        raise SystemExit(1) from exc

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        asyncio.run(run(settings))
    except (ConfigurationError, RPCError, CreditScoreError) as exc:
        logger.error("Fatal error: %s", exc)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        logger.warning("Execution interrupted by user")
        raise SystemExit(130) from None


if __name__ == "__main__":
    main()
