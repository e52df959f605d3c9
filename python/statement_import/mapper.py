"""
Transaction Mapper Module

Normalizes raw statement records from either format into CanonicalTransaction
objects. Rows that cannot be read are rejected individually and the rest of the
batch continues.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable

from ledger.errors import FieldValidationError
from ledger.models import Direction, PaymentMethod
from ledger.money import CENT, to_cents

from .config import load_settings
from .models import CanonicalTransaction
from .parsers.base import RowWarning, StatementParseResult
from .parsers.ofx import parse_ofx_amount, parse_ofx_date

logger = logging.getLogger(__name__)

INCOME_TRANSACTION_TYPES = {"CREDIT", "DEP", "DIRECTDEP", "INT", "DIV"}

PAYMENT_HINTS = {
    "ATM": PaymentMethod.CASH,
    "CASH": PaymentMethod.CASH,
    "POS": PaymentMethod.DEBIT_CARD,
    "DEBIT": PaymentMethod.DEBIT_CARD,
    "PAYMENT": PaymentMethod.INSTANT_TRANSFER,
    "DIRECTDEBIT": PaymentMethod.INSTANT_TRANSFER,
    "XFER": PaymentMethod.INSTANT_TRANSFER,
    "CHECK": PaymentMethod.BILLED_SLIP,
}

CURRENCY_PREFIXES = ("R$", "US$", "$", "€", "£")
NUMERIC_PATTERN = re.compile(r"^\d+(\.\d+)?$")

DAY_FIRST_PATTERN = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
YEAR_FIRST_PATTERN = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$")

# Header names tried when no column mapping is given
DATE_COLUMN_PATTERNS = [r"^data", r"date", r"\bdt\b", r"lan[cç]amento"]
AMOUNT_COLUMN_PATTERNS = [r"valor", r"\bamount\b", r"value", r"quantia"]
DESCRIPTION_COLUMN_PATTERNS = [
    r"descri", r"hist[oó]rico", r"memo", r"details", r"estabelecimento", r"nome", r"name",
]


@dataclass
class ColumnMapping:
    """Maps delimited-text headers to transaction fields."""

    date: str | None = None
    amount: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, str | None]) -> "ColumnMapping":
        return cls(
            date=data.get("date") or None,
            amount=data.get("amount") or None,
            description=data.get("description") or None,
        )

    @property
    def missing_fields(self) -> list[str]:
        missing = []
        if not self.date:
            missing.append("date")
        if not self.amount:
            missing.append("amount")
        return missing

    def to_dict(self) -> dict:
        return {"date": self.date, "amount": self.amount, "description": self.description}


@dataclass
class MappingResult:
    """Accepted transactions and rejected rows of one statement."""

    transactions: list[CanonicalTransaction] = field(default_factory=list)
    rejected: list[RowWarning] = field(default_factory=list)

    @property
    def accepted_count(self) -> int:
        return len(self.transactions)

    @property
    def rejected_count(self) -> int:
        return len(self.rejected)


def validate_column_mapping(mapping: ColumnMapping | dict) -> ColumnMapping:
    """Check that date and amount are mapped.

    Raises:
        FieldValidationError: Listing every missing required field
    """
    if isinstance(mapping, dict):
        mapping = ColumnMapping.from_dict(mapping)

    if mapping.missing_fields:
        raise FieldValidationError(mapping.missing_fields)
    return mapping


def _match_header(headers: list[str], patterns: list[str], taken: set[str]) -> str | None:
    for pattern in patterns:
        for header in headers:
            if header not in taken and re.search(pattern, header.lower()):
                return header
    return None


def suggest_column_mapping(headers: list[str]) -> ColumnMapping:
    """Guess a column mapping from header names."""
    taken: set[str] = set()
    date_column = _match_header(headers, DATE_COLUMN_PATTERNS, taken)
    if date_column:
        taken.add(date_column)
    amount_column = _match_header(headers, AMOUNT_COLUMN_PATTERNS, taken)
    if amount_column:
        taken.add(amount_column)
    description_column = _match_header(headers, DESCRIPTION_COLUMN_PATTERNS, taken)

    return ColumnMapping(date=date_column, amount=amount_column, description=description_column)


def parse_currency(value: str | None) -> Decimal | None:
    """Parse a localized currency string.

    Accepts ``1.234,56`` and ``1,234.56`` styles, a currency prefix, and a
    leading hyphen or surrounding parentheses for negatives. The separator that
    appears last is the decimal separator.

    Returns:
        Signed Decimal with 2 decimal places, or None if not a number
    """
    if value is None:
        return None

    cleaned = re.sub(r"\s", "", str(value))
    if not cleaned:
        return None

    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative = True
        cleaned = cleaned[1:-1]
    if cleaned.startswith("-"):
        negative = True
        cleaned = cleaned[1:]

    for prefix in CURRENCY_PREFIXES:
        if cleaned.upper().startswith(prefix):
            cleaned = cleaned[len(prefix):]
            break

    if cleaned.startswith("-"):
        negative = True
        cleaned = cleaned[1:]

    last_comma = cleaned.rfind(",")
    last_period = cleaned.rfind(".")
    if last_comma > last_period:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    elif last_period > last_comma:
        cleaned = cleaned.replace(",", "")

    if not NUMERIC_PATTERN.match(cleaned):
        return None

    try:
        amount = Decimal(cleaned).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None

    return -amount if negative else amount


def parse_date(value: str | None) -> date | None:
    """Parse DD/MM/YYYY, DD-MM-YYYY, YYYY-MM-DD or YYYY/MM/DD.

    Impossible dates such as 31/02/2024 return None.
    """
    if not value:
        return None

    cleaned = value.strip()
    match = DAY_FIRST_PATTERN.match(cleaned)
    if match:
        day, month, year = (int(part) for part in match.groups())
    else:
        match = YEAR_FIRST_PATTERN.match(cleaned)
        if not match:
            return None
        year, month, day = (int(part) for part in match.groups())

    try:
        return date(year, month, day)
    except ValueError:
        return None


def sanitize_description(
    description: str | None,
    settings: dict | None = None,
) -> str:
    """Clean a bank description for display.

    Collapses whitespace, strips configured noise prefixes and suffixes and
    truncates to the maximum length with a trailing ``...``.
    """
    settings = settings or load_settings()["descriptions"]
    default = settings.get("default", "Imported transaction")
    max_length = settings.get("max_length", 255)

    if not description:
        return default

    cleaned = re.sub(r"\s+", " ", description).strip()

    prefixes = settings.get("noise_prefixes") or []
    if prefixes:
        alternatives = "|".join(re.escape(p) for p in prefixes)
        cleaned = re.sub(rf"^({alternatives})\s+", "", cleaned, flags=re.IGNORECASE)

    suffixes = settings.get("noise_suffixes") or []
    if suffixes:
        alternatives = "|".join(re.escape(s) for s in suffixes)
        cleaned = re.sub(rf"\s+({alternatives})\s*$", "", cleaned, flags=re.IGNORECASE)

    if not cleaned:
        return default

    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length - 3] + "..."

    return cleaned


def build_audit_note(record: dict[str, str], imported_on: date) -> str:
    """Build the import note stored with an OFX transaction.

    The ``FITID: <id>`` part is what later imports use to recognize the
    transaction.
    """
    parts = [
        f"Imported via OFX on {imported_on.strftime('%d/%m/%Y')}",
        f"FITID: {record.get('FITID', '')}",
    ]

    memo = record.get("MEMO")
    if memo and memo != (record.get("NAME") or memo):
        parts.append(f"Original description: {memo}")

    if record.get("CHECKNUM"):
        parts.append(f"Check: {record['CHECKNUM']}")

    if record.get("REFNUM"):
        parts.append(f"Ref: {record['REFNUM']}")

    return " | ".join(parts)


class TransactionMapper:
    """Maps raw statement records to canonical transactions.

    Usage:
        mapper = TransactionMapper()
        mapped = mapper.map_statement(parse_result, mapping={"date": "Data", "amount": "Valor"})
    """

    def __init__(
        self,
        config_dir: Path | str | None = None,
        today: Callable[[], date] | None = None,
    ):
        """Initialize the mapper.

        Args:
            config_dir: Directory holding import_settings.yaml
            today: Clock used for the import date in audit notes
        """
        self.settings = load_settings(config_dir)
        self._today = today or date.today

    def sanitize(self, description: str | None) -> str:
        return sanitize_description(description, self.settings["descriptions"])

    def map_ofx_transaction(
        self,
        record: dict[str, str],
        row_index: int | None = None,
    ) -> CanonicalTransaction:
        """Map one STMTTRN record.

        Raises:
            ValueError: If the posted date or the amount cannot be read
        """
        amount = parse_ofx_amount(record.get("TRNAMT"))
        posted = parse_ofx_date(record.get("DTPOSTED")).date()
        transaction_type = (record.get("TRNTYPE") or "OTHER").upper()

        if amount < 0:
            direction = Direction.EXPENSE
        elif amount > 0:
            direction = Direction.INCOME
        elif transaction_type in INCOME_TRANSACTION_TYPES:
            direction = Direction.INCOME
        else:
            direction = Direction.EXPENSE

        description = self.sanitize(record.get("NAME") or record.get("MEMO"))

        return CanonicalTransaction(
            external_id=record.get("FITID") or None,
            description=description,
            amount_cents=to_cents(amount),
            posted_date=posted,
            direction=direction,
            payment_hint=PAYMENT_HINTS.get(transaction_type, PaymentMethod.DEBIT_CARD),
            audit_note=build_audit_note(record, self._today()),
            row_index=row_index,
            raw=dict(record),
        )

    def map_delimited_row(
        self,
        row: dict[str, str],
        mapping: ColumnMapping,
        row_index: int | None = None,
    ) -> CanonicalTransaction:
        """Map one delimited-text row.

        Raises:
            ValueError: If the date or the amount cannot be read
        """
        raw_date = row.get(mapping.date or "", "")
        posted = parse_date(raw_date)
        if posted is None:
            raise ValueError(f"Invalid date: {raw_date!r}")

        raw_amount = row.get(mapping.amount or "", "")
        amount = parse_currency(raw_amount)
        if amount is None:
            raise ValueError(f"Invalid amount: {raw_amount!r}")

        description = ""
        if mapping.description:
            description = (row.get(mapping.description) or "").strip()

        return CanonicalTransaction(
            description=self.sanitize(description),
            amount_cents=to_cents(amount),
            posted_date=posted,
            direction=Direction.EXPENSE if amount < 0 else Direction.INCOME,
            row_index=row_index,
            raw=dict(row),
        )

    def map_delimited_rows(
        self,
        rows: list[dict[str, str]],
        mapping: ColumnMapping | dict,
        row_lines: list[int] | None = None,
    ) -> MappingResult:
        """Map delimited rows, rejecting unreadable ones.

        Raises:
            FieldValidationError: Before any row, if date or amount is unmapped
        """
        mapping = validate_column_mapping(mapping)
        return self._map_records(
            rows,
            lambda row, index: self.map_delimited_row(row, mapping, index),
            row_lines,
        )

    def map_statement(
        self,
        result: StatementParseResult,
        mapping: ColumnMapping | dict | None = None,
    ) -> MappingResult:
        """Map every record of a parse result.

        Args:
            result: Successful parse result
            mapping: Column mapping for delimited text; guessed from the
                headers when omitted

        Raises:
            LedgerError: The parse result's first file error
            FieldValidationError: If a delimited mapping lacks date or amount
        """
        result.raise_for_errors()

        if result.format_used == "ofx":
            return self._map_records(result.records, self.map_ofx_transaction, result.record_lines)

        if mapping is None:
            mapping = suggest_column_mapping(result.headers)
            logger.info(f"Using guessed column mapping: {mapping.to_dict()}")

        return self.map_delimited_rows(result.records, mapping, result.record_lines)

    def _map_records(
        self,
        records: list[dict[str, str]],
        map_one: Callable[[dict[str, str], int], Any],
        row_lines: list[int] | None,
    ) -> MappingResult:
        mapped = MappingResult()

        for position, record in enumerate(records):
            index = row_lines[position] if row_lines else position + 1
            try:
                mapped.transactions.append(map_one(record, index))
            except ValueError as e:
                mapped.rejected.append(RowWarning(row=index, message=str(e)))

        if mapped.rejected:
            logger.warning(f"Rejected {mapped.rejected_count} of {len(records)} rows")

        logger.info(f"Mapped {mapped.accepted_count} transactions")
        return mapped
