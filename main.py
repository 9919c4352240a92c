import argparse
import logging
import sys
import time
from typing import Optional, Sequence

import structlog

from config import Settings, get_settings
from exceptions import PaymentsEngineError
from services import LedgerEngine
from storage import read_transaction_records, write_account_statements

logger = structlog.get_logger()


def configure_logging(settings: Settings) -> None:
    """Route structured logs through stdlib logging to stderr.

    stdout is reserved for the account CSV.
    """
    if settings.log_format == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(stream=sys.stderr, format="%(message)s")
    logging.getLogger().setLevel(settings.log_level.upper())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payments-engine",
        description=(
            "Apply a CSV of deposits, withdrawals, disputes, resolves and chargebacks "
            "and print the resulting client accounts as CSV."
        )
    )
    parser.add_argument("input", help="Path to the transactions CSV file.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    start_time = time.time()
    logger.info("Ledger run started", app=settings.app_name, path=args.input)

    engine = LedgerEngine()
    try:
        records = read_transaction_records(
            args.input,
            amount_scale=settings.amount_scale,
            encoding=settings.input_encoding
        )
        engine.run(records)
    except PaymentsEngineError as e:
        logger.error("Ledger run aborted", path=args.input, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1

    written = write_account_statements(sys.stdout, engine.statements())
    logger.info(
        "Account statements written",
        accounts=written,
        process_time=round(time.time() - start_time, 4)
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
