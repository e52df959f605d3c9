"""
Base Parser Module

Result types shared by the OFX and delimited-text parsers.
"""

from dataclasses import dataclass, field
from typing import Any

from ledger.errors import ErrorCode, LedgerError


@dataclass
class RowWarning:
    """A non-fatal problem with one record; the batch continues."""

    row: int | None
    message: str
    code: ErrorCode = ErrorCode.ROW_REJECTED

    def __str__(self) -> str:
        prefix = f"Row {self.row}: " if self.row is not None else ""
        return f"{prefix}{self.message}"


@dataclass
class StatementParseResult:
    """Outcome of parsing one statement file."""

    format_used: str
    records: list[dict[str, str]] = field(default_factory=list)
    record_lines: list[int] = field(default_factory=list)
    file_errors: list[LedgerError] = field(default_factory=list)
    row_warnings: list[RowWarning] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    delimiter: str | None = None
    encoding: str = "utf-8"
    statement: Any = None

    @property
    def success(self) -> bool:
        return not self.file_errors

    @property
    def record_count(self) -> int:
        return len(self.records)

    def raise_for_errors(self) -> None:
        """Raise the first file-level error, if any."""
        if self.file_errors:
            raise self.file_errors[0]


def preprocess_content(content: str) -> str:
    """Strip a BOM and normalize line endings."""
    if content.startswith('\ufeff'):
        content = content[1:]

    return content.replace('\r\n', '\n').replace('\r', '\n')
