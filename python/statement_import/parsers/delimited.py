"""
Delimited Text Parser

Parses bank exports with a header row and an unknown delimiter. Rows are
returned keyed by header; interpreting the cells is the mapper's job.
"""

import csv
import logging
from io import StringIO

from ledger.errors import (
    ErrorCode,
    InvalidInputError,
    LedgerError,
    NoTransactionsError,
)

from .base import RowWarning, StatementParseResult, preprocess_content

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = [";", ",", "\t"]
DEFAULT_DELIMITER = ";"
SAMPLE_LINES = 5


def detect_delimiter(content: str) -> str:
    """Guess the delimiter from the first non-blank lines.

    A delimiter whose per-line counts all stay within 1 of their mean beats
    one that merely appears more often. Delimiters that never appear are not
    considered.

    Args:
        content: File content

    Returns:
        One of ``;``, ``,`` or tab; ``;`` when none is present
    """
    lines = [line for line in preprocess_content(content or "").split("\n") if line.strip()]
    lines = lines[:SAMPLE_LINES]
    if not lines:
        return DEFAULT_DELIMITER

    scored = []
    for position, delimiter in enumerate(CANDIDATE_DELIMITERS):
        counts = [line.count(delimiter) for line in lines]
        mean = sum(counts) / len(counts)
        if mean == 0:
            continue
        consistent = all(abs(count - mean) <= 1 for count in counts)
        scored.append((consistent, mean, -position, delimiter))

    if not scored:
        return DEFAULT_DELIMITER

    return max(scored)[3]


def _is_blank(row: list[str]) -> bool:
    return all(not cell.strip() for cell in row)


def _read_rows(content: str, delimiter: str):
    """Yield (line number, cells, error) per record.

    A malformed record yields its csv.Error instead of cells and reading
    resumes on the next line. Line numbers are 1-based and point at the last
    physical line of the record.
    """
    reader = csv.reader(StringIO(content), delimiter=delimiter, strict=True)
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            yield reader.line_num, None, e
            continue
        yield reader.line_num, row, None


def parse_delimited(
    content: str,
    delimiter: str = "auto",
    trim_headers: bool = True,
    skip_empty_lines: bool = True,
    encoding: str = "utf-8",
) -> StatementParseResult:
    """Parse delimited text into header-keyed records.

    Args:
        content: Decoded file content
        delimiter: Delimiter, or "auto" to detect it
        trim_headers: Strip whitespace around header names
        skip_empty_lines: Ignore rows without any non-blank cell
        encoding: Encoding label the caller decoded the content with

    Returns:
        StatementParseResult; file-level problems are in ``file_errors`` and
        malformed rows and field-count mismatches in ``row_warnings``
    """
    result = StatementParseResult(format_used="delimited", encoding=encoding)

    if not content or not content.strip():
        result.delimiter = DEFAULT_DELIMITER
        result.file_errors.append(
            InvalidInputError("Delimited file is empty", code=ErrorCode.EMPTY_FILE)
        )
        return result

    content = preprocess_content(content)
    if delimiter == "auto" or not delimiter:
        delimiter = detect_delimiter(content)
    result.delimiter = delimiter

    try:
        numbered = [
            (line_no, row, error)
            for line_no, row, error in _read_rows(content, delimiter)
            if error or (row and not (skip_empty_lines and _is_blank(row)))
        ]
    except csv.Error as e:
        logger.warning(f"Delimited parse failed: {e}")
        result.file_errors.append(
            LedgerError(f"Could not parse delimited file: {e}", code=ErrorCode.PARSE_ERROR, details=e)
        )
        return result

    if not numbered:
        result.file_errors.append(
            InvalidInputError("Delimited file is empty", code=ErrorCode.EMPTY_FILE)
        )
        return result

    _, header_row, header_error = numbered[0]
    if header_error:
        logger.warning(f"Delimited header could not be read: {header_error}")
        result.file_errors.append(
            LedgerError(
                f"Could not parse delimited header: {header_error}",
                code=ErrorCode.PARSE_ERROR,
                details=header_error,
            )
        )
        return result

    headers = [name.strip() if trim_headers else name for name in header_row]
    while headers and not headers[-1].strip():
        headers.pop()
    result.headers = headers

    for line_no, row, error in numbered[1:]:
        if error:
            result.row_warnings.append(
                RowWarning(row=line_no, message=f"Could not parse row: {error}")
            )
            continue

        cells = list(row)
        while len(cells) > len(headers) and not cells[-1].strip():
            cells.pop()

        if len(cells) != len(headers):
            result.row_warnings.append(
                RowWarning(
                    row=line_no,
                    message=f"Expected {len(headers)} fields, found {len(cells)}",
                )
            )
            cells = (cells + [""] * len(headers))[:len(headers)]

        result.records.append(dict(zip(headers, cells)))
        result.record_lines.append(line_no)

    if not result.records:
        result.file_errors.append(NoTransactionsError("Delimited file has no data rows"))

    logger.info(
        f"Parsed delimited file: {result.record_count} rows, delimiter {delimiter!r}, "
        f"{len(result.row_warnings)} warnings"
    )
    return result
