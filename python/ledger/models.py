"""
Ledger Models

Canonical in-memory schema for ledger entries. The same record is produced by
expansion and returned by stores as the historical comparison corpus; storage
column names only appear inside the SQL store.
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum

from .money import cents_to_decimal_string, from_cents


class Direction(Enum):
    """Whether money leaves or enters the account."""
    EXPENSE = "expense"
    INCOME = "income"

    @property
    def sign(self) -> int:
        return -1 if self is Direction.EXPENSE else 1


class Condition(Enum):
    """How one intent spreads over time."""
    SINGLE = "single"
    INSTALLMENT = "installment"
    RECURRING = "recurring"

    @property
    def is_series(self) -> bool:
        return self is not Condition.SINGLE


class PaymentMethod(Enum):
    """Payment method of a ledger entry."""
    CASH = "cash"
    DEBIT_CARD = "debit_card"
    CREDIT_CARD = "credit_card"
    INSTANT_TRANSFER = "instant_transfer"
    BILLED_SLIP = "billed_slip"


class SettlementState(Enum):
    """Whether the obligation is paid/received.

    NOT_APPLICABLE entries are reconciled elsewhere (credit card invoices).
    """
    SETTLED = "settled"
    UNSETTLED = "unsettled"
    NOT_APPLICABLE = "not_applicable"

    @classmethod
    def from_flag(cls, flag: bool | None) -> "SettlementState":
        if flag is None:
            return cls.NOT_APPLICABLE
        return cls.SETTLED if flag else cls.UNSETTLED

    def to_flag(self) -> bool | None:
        if self is SettlementState.NOT_APPLICABLE:
            return None
        return self is SettlementState.SETTLED


class AccountKind(Enum):
    """Kind of ledger account a statement belongs to."""
    BANK = "bank"
    CARD = "card"

    @classmethod
    def parse(cls, value: "str | AccountKind") -> "AccountKind":
        if isinstance(value, AccountKind):
            return value
        aliases = {"bank": cls.BANK, "banco": cls.BANK, "card": cls.CARD, "cartao": cls.CARD}
        try:
            return aliases[str(value).strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown account kind: {value}")


@dataclass
class LedgerEntry:
    """A dated, signed monetary record."""

    user_id: str
    description: str
    amount_cents: int
    date: date
    period_label: str
    direction: Direction
    condition: Condition = Condition.SINGLE
    payment_method: PaymentMethod = PaymentMethod.DEBIT_CARD
    settled: SettlementState = SettlementState.UNSETTLED
    id: str | None = None
    confirmation_date: date | None = None
    due_date: date | None = None
    series_id: str | None = None
    occurrence_index: int | None = None
    occurrence_total: int | None = None
    payer_id: str | None = None
    category_id: str | None = None
    account_id: str | None = None
    card_id: str | None = None
    audit_note: str | None = None
    is_split: bool = False

    @property
    def amount(self) -> Decimal:
        """Signed amount in currency units."""
        return from_cents(self.amount_cents)

    @property
    def is_series(self) -> bool:
        return self.series_id is not None

    def copy(self, **changes) -> "LedgerEntry":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "description": self.description,
            "amount": cents_to_decimal_string(self.amount_cents),
            "date": self.date.isoformat(),
            "period": self.period_label,
            "direction": self.direction.value,
            "condition": self.condition.value,
            "payment_method": self.payment_method.value,
            "settled": self.settled.value,
            "confirmation_date": self.confirmation_date.isoformat() if self.confirmation_date else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "series_id": self.series_id,
            "occurrence_index": self.occurrence_index,
            "occurrence_total": self.occurrence_total,
            "payer_id": self.payer_id,
            "category_id": self.category_id,
            "account_id": self.account_id,
            "card_id": self.card_id,
            "audit_note": self.audit_note,
            "is_split": self.is_split,
        }


@dataclass
class CorpusQuery:
    """Filter intent for fetching a historical comparison corpus.

    Every predicate is optional except the user; the store decides how to
    express it.
    """

    user_id: str
    account_id: str | None = None
    account_kind: AccountKind = AccountKind.BANK
    start_date: date | None = None
    end_date: date | None = None
    amounts_cents: set[int] | None = None
    direction: Direction | None = None
    categorized_only: bool = False
    limit: int | None = None
