"""
Ledger Entry Intents

Validated description of one user-entered financial intent, before expansion
into concrete ledger rows.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import ExpansionConfigError
from .models import Condition, Direction, PaymentMethod
from .money import to_cents

MIN_SERIES_OCCURRENCES = 2
MAX_SERIES_OCCURRENCES = 60


class LedgerEntryIntent(BaseModel):
    """One financial intent entered by the user."""

    description: str = Field(min_length=1, max_length=255)
    amount: Decimal = Field(ge=0)
    purchase_date: date
    direction: Direction = Direction.EXPENSE
    condition: Condition = Condition.SINGLE
    payment_method: PaymentMethod = PaymentMethod.DEBIT_CARD
    installment_count: int | None = Field(default=None, ge=1, le=MAX_SERIES_OCCURRENCES)
    recurrence_count: int | None = Field(default=None, ge=1, le=MAX_SERIES_OCCURRENCES)
    settled: bool | None = None
    split: bool = False
    payer_id: str | None = None
    secondary_payer_id: str | None = None
    due_date: date | None = None
    confirmation_date: date | None = None
    category_id: str | None = None
    account_id: str | None = None
    card_id: str | None = None
    note: str | None = None

    @model_validator(mode="after")
    def _check_condition(self) -> "LedgerEntryIntent":
        self.description = self.description.strip()
        if not self.description:
            raise ValueError("Description is required.")

        if self.condition is Condition.INSTALLMENT:
            if not self.installment_count:
                raise ValueError("Installment count is required.")
            if self.installment_count < MIN_SERIES_OCCURRENCES:
                raise ValueError("Installments need at least two occurrences.")

        if self.condition is Condition.RECURRING:
            if not self.recurrence_count:
                raise ValueError("Recurrence count is required.")
            if self.recurrence_count < MIN_SERIES_OCCURRENCES:
                raise ValueError("Recurrences need at least two months.")

        if self.split:
            if not self.payer_id:
                raise ValueError("A primary payer is required to split the entry.")
            if not self.secondary_payer_id:
                raise ValueError("A secondary payer is required to split the entry.")
            if self.secondary_payer_id == self.payer_id:
                raise ValueError("Split payers must be different.")

        return self

    @property
    def total_amount_cents(self) -> int:
        return to_cents(abs(self.amount))

    @property
    def occurrence_count(self) -> int:
        if self.condition is Condition.INSTALLMENT:
            return self.installment_count or 0
        if self.condition is Condition.RECURRING:
            return self.recurrence_count or 0
        return 1


def parse_intent(data: "LedgerEntryIntent | dict[str, Any]") -> LedgerEntryIntent:
    """Validate raw intent data.

    Raises:
        ExpansionConfigError: If the intent is invalid
    """
    if isinstance(data, LedgerEntryIntent):
        return data

    try:
        return LedgerEntryIntent.model_validate(data)
    except ValidationError as e:
        messages = "; ".join(error["msg"] for error in e.errors())
        raise ExpansionConfigError(f"Invalid entry: {messages}", details=e) from e
