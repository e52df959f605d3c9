"""
Error taxonomy for statement import and ledger generation.

Every error carries a classified code usable for a user-facing message. The
underlying exception, when there is one, is attached as ``details`` for
diagnostics only.
"""

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Classified error codes."""
    INVALID_FILE = "invalid_file"
    EMPTY_FILE = "empty_file"
    PARSE_ERROR = "parse_error"
    STRUCTURAL_PARSE_ERROR = "structural_parse_error"
    NO_TRANSACTIONS = "no_transactions"
    FIELD_VALIDATION_ERROR = "field_validation_error"
    ROW_REJECTED = "row_rejected"
    PERSISTENCE_FAILURE = "persistence_failure"
    EXPANSION_CONFIG_ERROR = "expansion_config_error"
    RATE_LIMITED = "rate_limited"
    INVALID_BATCH = "invalid_batch"
    NOT_IN_SERIES = "not_in_series"
    ENTRY_NOT_FOUND = "entry_not_found"
    SETTLEMENT_NOT_APPLICABLE = "settlement_not_applicable"


USER_MESSAGES = {
    ErrorCode.INVALID_FILE: "The file is empty or is not a valid statement.",
    ErrorCode.EMPTY_FILE: "The file is empty.",
    ErrorCode.PARSE_ERROR: "The file could not be read.",
    ErrorCode.STRUCTURAL_PARSE_ERROR: "The statement is missing required sections.",
    ErrorCode.NO_TRANSACTIONS: "No transactions were found in the file.",
    ErrorCode.FIELD_VALIDATION_ERROR: "Required columns are not mapped.",
    ErrorCode.ROW_REJECTED: "A row could not be read and was skipped.",
    ErrorCode.PERSISTENCE_FAILURE: "The entries could not be saved. Nothing was changed.",
    ErrorCode.EXPANSION_CONFIG_ERROR: "The entry configuration is invalid.",
    ErrorCode.RATE_LIMITED: "Import limit reached. Try again later.",
    ErrorCode.INVALID_BATCH: "The import batch is invalid.",
    ErrorCode.NOT_IN_SERIES: "This entry is not part of a series.",
    ErrorCode.ENTRY_NOT_FOUND: "Entry not found.",
    ErrorCode.SETTLEMENT_NOT_APPLICABLE: "Settlement is not tracked for this entry.",
}


class LedgerError(Exception):
    """Base class for classified errors."""

    code: ErrorCode = ErrorCode.PARSE_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    @property
    def user_message(self) -> str:
        return USER_MESSAGES.get(self.code, self.message)

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}


class InvalidInputError(LedgerError):
    """Malformed or empty input file."""
    code = ErrorCode.INVALID_FILE


class StructuralParseError(LedgerError):
    """Right format, but required sections are missing."""
    code = ErrorCode.STRUCTURAL_PARSE_ERROR


class NoTransactionsError(LedgerError):
    """Well-formed statement without any transaction."""
    code = ErrorCode.NO_TRANSACTIONS


class FieldValidationError(LedgerError):
    """A required column mapping field is missing."""
    code = ErrorCode.FIELD_VALIDATION_ERROR

    def __init__(self, missing_fields: list[str], message: str | None = None):
        self.missing_fields = list(missing_fields)
        super().__init__(
            message or f"Required fields not mapped: {', '.join(self.missing_fields)}"
        )


class PersistenceFailure(LedgerError):
    """A multi-row write failed and was rolled back as a whole."""
    code = ErrorCode.PERSISTENCE_FAILURE


class ExpansionConfigError(LedgerError):
    """Intent configuration rejected before any entry was built."""
    code = ErrorCode.EXPANSION_CONFIG_ERROR


class RateLimitExceeded(LedgerError):
    """Admission control refused the import."""
    code = ErrorCode.RATE_LIMITED

    def __init__(self, message: str, retry_after_seconds: float | None = None):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class InvalidBatchError(LedgerError):
    """Import batch is empty or too large."""
    code = ErrorCode.INVALID_BATCH


class SeriesOperationError(LedgerError):
    """A series-scoped mutation could not be applied."""
    code = ErrorCode.NOT_IN_SERIES
