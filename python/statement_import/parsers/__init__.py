"""
Statement parsers for OFX and delimited text exports.
"""

import logging

from ledger.errors import LedgerError

from .base import RowWarning, StatementParseResult, preprocess_content
from .delimited import detect_delimiter, parse_delimited
from .ofx import OfxAccount, OfxStatement, parse_ofx, parse_ofx_amount, parse_ofx_date

logger = logging.getLogger(__name__)

FORMATS = ("auto", "ofx", "delimited")


def detect_format(content: str) -> str:
    """Return "ofx" for OFX markup or headers, "delimited" otherwise."""
    head = (content or "")[:4096].upper()
    if "<OFX" in head or "OFXHEADER" in head:
        return "ofx"
    return "delimited"


class StatementParser:
    """Parses statement files of either supported format.

    Usage:
        parser = StatementParser()
        result = parser.parse(content)
        if result.success:
            for record in result.records:
                ...
    """

    def __init__(self, trim_headers: bool = True, skip_empty_lines: bool = True):
        self.trim_headers = trim_headers
        self.skip_empty_lines = skip_empty_lines

    def parse(
        self,
        content: str,
        format: str = "auto",
        delimiter: str = "auto",
        encoding: str = "utf-8",
    ) -> StatementParseResult:
        """Parse statement content.

        Args:
            content: Decoded file content
            format: "auto", "ofx" or "delimited"
            delimiter: Delimiter for delimited text, or "auto"
            encoding: Encoding label the caller decoded the content with

        Returns:
            StatementParseResult
        """
        if format not in FORMATS:
            raise ValueError(f"Unknown statement format: {format}")

        if format == "auto":
            format = detect_format(content)

        if format == "ofx":
            return self._parse_ofx(content, encoding)

        return parse_delimited(
            content,
            delimiter=delimiter,
            trim_headers=self.trim_headers,
            skip_empty_lines=self.skip_empty_lines,
            encoding=encoding,
        )

    def _parse_ofx(self, content: str, encoding: str) -> StatementParseResult:
        result = StatementParseResult(format_used="ofx", encoding=encoding)

        try:
            statement = parse_ofx(content)
        except LedgerError as e:
            logger.warning(f"OFX parse failed ({e.code.value}): {e}")
            result.file_errors.append(e)
            return result

        result.statement = statement
        result.records = statement.transactions
        result.record_lines = list(range(1, len(statement.transactions) + 1))
        result.headers = sorted({key for record in statement.transactions for key in record})
        return result


__all__ = [
    "StatementParser",
    "StatementParseResult",
    "RowWarning",
    "OfxAccount",
    "OfxStatement",
    "detect_format",
    "detect_delimiter",
    "parse_delimited",
    "parse_ofx",
    "parse_ofx_amount",
    "parse_ofx_date",
    "preprocess_content",
]
