"""CLI entry point for exporting a monthly cash report.

Usage:
    python -m src.cli.export --period 2024-01
    python -m src.cli.export --period 2024-01 --output reports/

Exit Codes:
    0 - Success: report written
    1 - Failure: invalid period or database error; nothing written

Logging:
    INFO level logs to both stdout and logs/export.log
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from src.services.errors import BillingError
from src.services.logging import setup_server_logging
from src.services.report_export import report_filename

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export the monthly cash report as CSV")
    parser.add_argument("--period", required=True, help="Billing period, YYYY-MM")
    parser.add_argument(
        "--output", default=".", help="Directory to write the report to (default: .)"
    )
    return parser


async def export_report(period: str, output_dir: Path, session_factory=None) -> Path:
    """Render the report for period and write it into output_dir.

    Returns:
        Path of the written file
    """
    from src.services import AsyncSessionLocal, init_models
    from src.services.ledger_service import LedgerService

    if session_factory is None:
        await init_models()
        session_factory = AsyncSessionLocal

    async with session_factory() as session:
        content = await LedgerService(session).export_report(period)

    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / report_filename(period)
    path.write_text(content, encoding="utf-8")
    return path


async def main(argv: list[str] | None = None, session_factory=None) -> int:
    """
    Main entry point for the export CLI.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = build_parser().parse_args(argv)
    try:
        path = await export_report(args.period, Path(args.output), session_factory)
    except BillingError as e:
        logger.error("Export failed: %s", e)
        return 1
    except SQLAlchemyError as e:
        logger.error("Could not read billing data: %s", e)
        return 1
    except OSError as e:
        logger.error("Could not write report: %s", e)
        return 1

    logger.info("Report for %s written to %s", args.period, path)
    return 0


def run() -> None:
    load_dotenv()
    setup_server_logging("logs/export.log")
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
