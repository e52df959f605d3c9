"""
Ledger Module

Canonical ledger entries, intent expansion into single, installment and
recurring series, series-scoped edits, persistence stores and admission control.
"""

from .errors import (
    ErrorCode,
    LedgerError,
    InvalidInputError,
    StructuralParseError,
    NoTransactionsError,
    FieldValidationError,
    PersistenceFailure,
    ExpansionConfigError,
    RateLimitExceeded,
    InvalidBatchError,
    SeriesOperationError,
)
from .models import (
    AccountKind,
    Condition,
    CorpusQuery,
    Direction,
    LedgerEntry,
    PaymentMethod,
    SettlementState,
)
from .money import to_cents, from_cents, split_cents
from .dates import add_months, add_months_to_period, period_label
from .intents import LedgerEntryIntent, parse_intent
from .expander import LedgerExpander, build_shares
from .series import SeriesEditor, SeriesScope, SeriesUpdate
from .store import LedgerStore, InMemoryLedgerStore, SqlLedgerStore
from .rate_limit import (
    AttemptStore,
    InMemoryAttemptStore,
    SqlAttemptStore,
    SlidingWindowRateLimiter,
)
from .totals import LedgerTotals, calculate_totals, totals_by_period
from .service import LedgerService
from .database import create_db_engine, init_schema

__all__ = [
    # Errors
    "ErrorCode",
    "LedgerError",
    "InvalidInputError",
    "StructuralParseError",
    "NoTransactionsError",
    "FieldValidationError",
    "PersistenceFailure",
    "ExpansionConfigError",
    "RateLimitExceeded",
    "InvalidBatchError",
    "SeriesOperationError",
    # Models
    "AccountKind",
    "Condition",
    "CorpusQuery",
    "Direction",
    "LedgerEntry",
    "PaymentMethod",
    "SettlementState",
    # Money and calendar
    "to_cents",
    "from_cents",
    "split_cents",
    "add_months",
    "add_months_to_period",
    "period_label",
    # Expansion
    "LedgerEntryIntent",
    "parse_intent",
    "LedgerExpander",
    "build_shares",
    "LedgerService",
    # Series
    "SeriesEditor",
    "SeriesScope",
    "SeriesUpdate",
    # Persistence
    "LedgerStore",
    "InMemoryLedgerStore",
    "SqlLedgerStore",
    "create_db_engine",
    "init_schema",
    # Rate limiting
    "AttemptStore",
    "InMemoryAttemptStore",
    "SqlAttemptStore",
    "SlidingWindowRateLimiter",
    # Totals
    "LedgerTotals",
    "calculate_totals",
    "totals_by_period",
]
