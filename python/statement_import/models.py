"""
Canonical transaction shape shared by both statement formats.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from ledger.dates import period_label
from ledger.models import Direction, PaymentMethod
from ledger.money import cents_to_decimal_string, from_cents


@dataclass
class CanonicalTransaction:
    """Format-independent normalized transaction."""

    description: str
    amount_cents: int
    posted_date: date
    direction: Direction
    payment_hint: PaymentMethod = PaymentMethod.DEBIT_CARD
    external_id: str | None = None
    audit_note: str | None = None
    row_index: int | None = None
    raw: dict = field(default_factory=dict)
    category_id: str | None = None
    payer_id: str | None = None

    @property
    def amount(self) -> Decimal:
        """Absolute amount in currency units."""
        return abs(from_cents(self.amount_cents))

    @property
    def period(self) -> str:
        return period_label(self.posted_date)

    def to_dict(self) -> dict:
        return {
            "external_id": self.external_id,
            "description": self.description,
            "amount": cents_to_decimal_string(abs(self.amount_cents)),
            "amount_cents": self.amount_cents,
            "posted_date": self.posted_date.isoformat(),
            "period": self.period,
            "direction": self.direction.value,
            "payment_hint": self.payment_hint.value,
            "audit_note": self.audit_note,
            "category_id": self.category_id,
        }
