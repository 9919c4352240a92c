import csv
from typing import Iterable, Iterator, TextIO

from pydantic import ValidationError
import structlog

from exceptions import InputFileError, RecordParseError
from models import DEFAULT_AMOUNT_SCALE, AccountStatement, TransactionRecord

logger = structlog.get_logger()

INPUT_FIELDS = ("type", "client", "tx", "amount")
OUTPUT_FIELDS = ("client", "available", "held", "total", "locked")


def parse_rows(
    lines: Iterable[str],
    amount_scale: int = DEFAULT_AMOUNT_SCALE
) -> Iterator[TransactionRecord]:
    """Parse CSV text (header first) into transaction records.

    Columns are located by header name; the amount column may be left off
    entirely on dispute, resolve and chargeback rows.
    """
    reader = csv.reader(lines)
    header = next(reader, None)
    if header is None:
        return

    columns = [name.strip() for name in header]
    missing = [name for name in INPUT_FIELDS if name not in columns]
    if missing:
        raise RecordParseError(f"header is missing column(s): {', '.join(missing)}", line=1)
    positions = {name: columns.index(name) for name in INPUT_FIELDS}

    try:
        for row in reader:
            if not any(field.strip() for field in row):
                continue
            values = {
                name: row[index]
                for name, index in positions.items()
                if index < len(row)
            }
            try:
                record = TransactionRecord.model_validate(values, context={"scale": amount_scale})
            except ValidationError as e:
                raise RecordParseError(_describe(e), line=reader.line_num) from e
            yield record
    except csv.Error as e:
        raise RecordParseError(str(e), line=reader.line_num) from e


def read_transaction_records(
    path: str,
    amount_scale: int = DEFAULT_AMOUNT_SCALE,
    encoding: str = "utf-8"
) -> Iterator[TransactionRecord]:
    """Open ``path`` and stream its records.

    The file is opened eagerly so a missing or unreadable file fails here
    rather than on first iteration.
    """
    try:
        file = open(path, newline="", encoding=encoding)
    except OSError as e:
        raise InputFileError(f"cannot read input file {path}: {e.strerror or e}") from e

    logger.info("Reading transactions", path=path)
    return _stream(file, path, amount_scale)


def _stream(file: TextIO, path: str, amount_scale: int) -> Iterator[TransactionRecord]:
    with file:
        try:
            yield from parse_rows(file, amount_scale=amount_scale)
        except UnicodeDecodeError as e:
            raise InputFileError(f"cannot decode input file {path}: {e}") from e


def write_account_statements(stream: TextIO, statements: Iterable[AccountStatement]) -> int:
    """Write the statements as CSV and return how many rows were written."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_FIELDS)
    written = 0
    for statement in statements:
        writer.writerow(statement.as_row())
        written += 1
    return written


def _describe(error: ValidationError) -> str:
    details = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "row"
        details.append(f"{location}: {item['msg']}")
    return "; ".join(details)
