"""
Income / expense totals over ledger entries.
"""

from dataclasses import dataclass
from decimal import Decimal

from .models import Direction, LedgerEntry
from .money import from_cents


@dataclass
class LedgerTotals:
    """Totals for a list of entries, in cents."""

    income_cents: int = 0
    expense_cents: int = 0

    @property
    def net_cents(self) -> int:
        return self.income_cents - self.expense_cents

    @property
    def total_income(self) -> Decimal:
        return from_cents(self.income_cents)

    @property
    def total_expenses(self) -> Decimal:
        return from_cents(self.expense_cents)

    @property
    def net_total(self) -> Decimal:
        return from_cents(self.net_cents)

    def to_dict(self) -> dict:
        return {
            "total_income": float(self.total_income),
            "total_expenses": float(self.total_expenses),
            "net_total": float(self.net_total),
        }


def calculate_totals(entries: list[LedgerEntry]) -> LedgerTotals:
    """Sum absolute amounts by direction."""
    totals = LedgerTotals()
    for entry in entries:
        amount = abs(entry.amount_cents)
        if entry.direction is Direction.INCOME:
            totals.income_cents += amount
        else:
            totals.expense_cents += amount
    return totals


def totals_by_period(entries: list[LedgerEntry]) -> dict[str, LedgerTotals]:
    """Totals grouped by period label, in chronological order."""
    grouped: dict[str, list[LedgerEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.period_label, []).append(entry)
    return {period: calculate_totals(grouped[period]) for period in sorted(grouped)}
