"""
Series Operations Module

Series-scoped bulk mutation of ledger entries created from one Installment or
Recurring intent.
"""

import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, Field, ValidationError, model_validator

from .dates import add_months, month_difference
from .errors import ErrorCode, ExpansionConfigError, SeriesOperationError
from .models import LedgerEntry, PaymentMethod, SettlementState
from .money import to_cents
from .store import LedgerStore

logger = logging.getLogger(__name__)


class SeriesScope(Enum):
    """Which entries of a series a mutation applies to."""
    CURRENT = "current"
    FUTURE = "future"
    ALL = "all"


class SeriesUpdate(BaseModel):
    """Changes applied to every entry in scope.

    Fields left unset are not touched. Setting due_date or confirmation_date to
    None clears them.
    """

    description: str | None = Field(default=None, min_length=1, max_length=255)
    category_id: str | None = None
    note: str | None = None
    payer_id: str | None = None
    account_id: str | None = None
    card_id: str | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    due_date: date | None = None
    confirmation_date: date | None = None

    @model_validator(mode="after")
    def _strip_description(self) -> "SeriesUpdate":
        if self.description is not None:
            self.description = self.description.strip()
            if not self.description:
                raise ValueError("Description cannot be blank.")
        return self


def select_scope(
    anchor: LedgerEntry,
    series: list[LedgerEntry],
    scope: SeriesScope,
) -> list[LedgerEntry]:
    """Pick the entries of a series covered by a scope.

    FUTURE compares period labels chronologically, not occurrence indexes.
    """
    if scope is SeriesScope.CURRENT:
        return [anchor]
    if scope is SeriesScope.FUTURE:
        return [entry for entry in series if entry.period_label >= anchor.period_label]
    return list(series)


class SeriesEditor:
    """Applies scoped updates and deletions through a store."""

    def __init__(self, store: LedgerStore, today: Callable[[], date] | None = None):
        self.store = store
        self._today = today or date.today

    def _load_anchor(self, user_id: str, entry_id: str) -> LedgerEntry:
        anchor = self.store.get_entry(user_id, entry_id)
        if anchor is None:
            raise SeriesOperationError(
                f"Entry not found: {entry_id}", code=ErrorCode.ENTRY_NOT_FOUND
            )
        return anchor

    def _entries_in_scope(
        self,
        user_id: str,
        entry_id: str,
        scope: SeriesScope,
    ) -> tuple[LedgerEntry, list[LedgerEntry]]:
        anchor = self._load_anchor(user_id, entry_id)
        if scope is SeriesScope.CURRENT:
            return anchor, [anchor]

        if not anchor.series_id:
            raise SeriesOperationError(f"Entry {entry_id} is not part of a series")

        series = self.store.find_series(user_id, anchor.series_id)
        return anchor, select_scope(anchor, series, scope)

    def update(
        self,
        user_id: str,
        entry_id: str,
        scope: SeriesScope | str,
        changes: SeriesUpdate | dict[str, Any],
    ) -> int:
        """Update the entries in scope.

        Returns:
            Number of entries updated
        """
        scope = SeriesScope(scope)
        if not isinstance(changes, SeriesUpdate):
            try:
                changes = SeriesUpdate.model_validate(changes)
            except ValidationError as e:
                messages = "; ".join(error["msg"] for error in e.errors())
                raise ExpansionConfigError(f"Invalid update: {messages}", details=e) from e
        provided = changes.model_fields_set

        anchor, targets = self._entries_in_scope(user_id, entry_id, scope)

        base_fields: dict[str, Any] = {}
        if "description" in provided and changes.description:
            base_fields["description"] = changes.description
        for name in ("category_id", "payer_id", "account_id", "card_id"):
            if name in provided:
                base_fields[name] = getattr(changes, name)
        if "note" in provided:
            base_fields["audit_note"] = changes.note
        if "amount" in provided and changes.amount is not None:
            base_fields["amount_cents"] = to_cents(changes.amount) * anchor.direction.sign
        if "confirmation_date" in provided:
            base_fields["confirmation_date"] = changes.confirmation_date

        per_entry = {}
        for entry in targets:
            fields = dict(base_fields)
            if "due_date" in provided:
                fields["due_date"] = self._rebase_due_date(changes.due_date, anchor, entry)
            per_entry[entry.id] = fields

        updated = self.store.update_entries(user_id, per_entry)
        logger.info(f"Updated {updated} entries (scope={scope.value}, anchor={entry_id})")
        return updated

    def _rebase_due_date(
        self,
        due_date: date | None,
        anchor: LedgerEntry,
        entry: LedgerEntry,
    ) -> date | None:
        if due_date is None:
            return None
        return add_months(due_date, month_difference(anchor.date, entry.date))

    def delete(self, user_id: str, entry_id: str, scope: SeriesScope | str) -> int:
        """Delete the entries in scope.

        Returns:
            Number of entries deleted
        """
        scope = SeriesScope(scope)
        _, targets = self._entries_in_scope(user_id, entry_id, scope)
        deleted = self.store.delete_entries(user_id, [entry.id for entry in targets])
        logger.info(f"Deleted {deleted} entries (scope={scope.value}, anchor={entry_id})")
        return deleted

    def delete_entry(self, user_id: str, entry_id: str) -> int:
        """Delete one entry, series or not."""
        self._load_anchor(user_id, entry_id)
        return self.store.delete_entries(user_id, [entry_id])

    def toggle_settlement(self, user_id: str, entry_id: str, value: bool) -> LedgerEntry:
        """Mark one entry as settled or unsettled.

        Raises:
            SeriesOperationError: If settlement is not tracked for the entry
        """
        entry = self._load_anchor(user_id, entry_id)
        if entry.settled is SettlementState.NOT_APPLICABLE:
            raise SeriesOperationError(
                f"Settlement is not tracked for entry {entry_id}",
                code=ErrorCode.SETTLEMENT_NOT_APPLICABLE,
            )

        fields: dict[str, Any] = {"settled": SettlementState.from_flag(value)}
        if entry.payment_method is PaymentMethod.BILLED_SLIP:
            fields["confirmation_date"] = self._today() if value else None

        self.store.update_entries(user_id, {entry_id: fields})
        return entry.copy(**fields)
