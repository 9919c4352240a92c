"""Fatal errors that abort a ledger run."""
from typing import Optional


class PaymentsEngineError(Exception):
    """Base exception for errors that stop the run."""

    pass


class InputFileError(PaymentsEngineError):
    """Input file is missing or cannot be read."""

    pass


class RecordParseError(PaymentsEngineError):
    """A row (or the header) of the input cannot be parsed."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
