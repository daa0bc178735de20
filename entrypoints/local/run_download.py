#!/usr/bin/env python3
"""Local Development - EML Download

Downloads a single Outlook message as an .eml file from the command line.
Stands in for the Outlook add-in pane: the message id and subject are given
as arguments and progress is printed to the terminal.
"""

import sys
import asyncio
import argparse
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from infra.core.config import get_config
from infra.core.exceptions import EmlDownloaderError
from infra.core.logger import get_logger, update_all_loggers_level
from modules.eml_download import (
    CommandLineHost,
    ContentFetcher,
    EmlDelivery,
    EmlDownloadOrchestrator,
)

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Local Development - Download an Outlook message as .eml")
    parser.add_argument(
        "--item-id",
        default=None,
        help="Message id as reported by Outlook (REST or EWS format)"
    )
    parser.add_argument(
        "--subject",
        default=None,
        help="Message subject, used for the filename and the subject search fallback"
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory to save the .eml file (default: EML_OUTPUT_DIR or ./downloads)"
    )
    parser.add_argument(
        "--no-subject-search",
        action="store_true",
        help="Disable the subject search fallback strategy"
    )
    parser.add_argument(
        "--sign-out",
        action="store_true",
        help="Remove cached accounts from the token cache and exit"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable DEBUG logging"
    )
    return parser


async def run(args: argparse.Namespace) -> int:
    if args.sign_out:
        try:
            async with EmlDownloadOrchestrator() as orchestrator:
                await orchestrator.sign_out()
        except EmlDownloaderError as e:
            logger.error(f"❌ Sign-out failed: {e}")
            return 1
        logger.info("👋 Signed out")
        return 0

    host = CommandLineHost(item_id=args.item_id, subject=args.subject)
    fetcher = ContentFetcher(enable_subject_search=False if args.no_subject_search else None)

    async with EmlDownloadOrchestrator(
        fetcher=fetcher,
        delivery=EmlDelivery(args.output_dir),
    ) as orchestrator:
        if not await orchestrator.on_host_ready(host):
            return 1

        outcome = await orchestrator.run_download(host)

    if not outcome.success:
        logger.error(f"❌ Download failed: [{outcome.error_category}] {outcome.error_code}")
        return 1

    logger.info(f"✅ Saved {outcome.result.filename} via {outcome.result.strategy}")
    return 0


def main():
    """Main entry point for local EML download"""
    parser = build_parser()
    args = parser.parse_args()
    if not args.item_id and not args.sign_out:
        parser.error("--item-id is required")

    update_all_loggers_level("DEBUG" if args.verbose else get_config().log_level)

    logger.info("🚀 Starting LOCAL EML download")
    logger.info(f"📁 Project root: {PROJECT_ROOT}")
    logger.debug(f"⚙️  Config: {get_config().to_dict()}")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
