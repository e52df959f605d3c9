"""
Ledger Expander Module

Expands one LedgerEntryIntent into one or many concrete ledger entries with
exact cents accounting and calendar-safe date progression.

Expansion is pure: given the same intent, clock and series-id factory it always
produces the same entries and touches no storage.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from .dates import add_months, add_months_to_period, period_label
from .errors import ExpansionConfigError
from .intents import LedgerEntryIntent, parse_intent
from .models import Condition, LedgerEntry, PaymentMethod, SettlementState
from .money import split_cents

logger = logging.getLogger(__name__)


@dataclass
class Share:
    """One payer's part of an intent total."""

    payer_id: str | None
    amount_cents: int


def build_shares(
    total_cents: int,
    payer_id: str | None,
    split: bool = False,
    secondary_payer_id: str | None = None,
) -> list[Share]:
    """Divide a total between payers.

    Raises:
        ExpansionConfigError: If a split lacks two distinct payers
    """
    if not split:
        return [Share(payer_id=payer_id, amount_cents=total_cents)]

    if not payer_id or not secondary_payer_id or payer_id == secondary_payer_id:
        raise ExpansionConfigError("Split requires two distinct payers.")

    primary, secondary = split_cents(total_cents, 2)
    return [
        Share(payer_id=payer_id, amount_cents=primary),
        Share(payer_id=secondary_payer_id, amount_cents=secondary),
    ]


class LedgerExpander:
    """Turns intents into ledger entries."""

    def __init__(
        self,
        today: Callable[[], date] | None = None,
        series_id_factory: Callable[[], str] | None = None,
    ):
        """Initialize the expander.

        Args:
            today: Clock used for slip confirmation dates
            series_id_factory: Generator of series identifiers
        """
        self._today = today or date.today
        self._new_series_id = series_id_factory or (lambda: str(uuid.uuid4()))

    def expand(
        self,
        intent: LedgerEntryIntent | dict[str, Any],
        user_id: str,
        audit_note: str | None = None,
    ) -> list[LedgerEntry]:
        """Expand an intent into ledger entries.

        Args:
            intent: Intent or raw intent data
            user_id: Owner of the entries
            audit_note: Note stored on every entry (defaults to the intent note)

        Returns:
            Entries ordered by occurrence, then by payer

        Raises:
            ExpansionConfigError: If the intent is invalid
        """
        intent = parse_intent(intent)
        occurrences = intent.occurrence_count
        if occurrences < 1:
            raise ExpansionConfigError("Occurrence count must be positive.")

        shares = build_shares(
            intent.total_amount_cents,
            intent.payer_id,
            split=intent.split,
            secondary_payer_id=intent.secondary_payer_id,
        )

        if intent.condition is Condition.INSTALLMENT:
            amounts_by_share = [split_cents(share.amount_cents, occurrences) for share in shares]
        else:
            amounts_by_share = [[share.amount_cents] * occurrences for share in shares]

        series_id = self._new_series_id() if intent.condition.is_series else None
        first_period = period_label(intent.purchase_date)
        note = audit_note if audit_note is not None else intent.note
        sign = intent.direction.sign

        entries = []
        for index in range(occurrences):
            settled = self._resolve_settlement(intent, index)
            for share_index, share in enumerate(shares):
                entries.append(LedgerEntry(
                    user_id=user_id,
                    description=intent.description,
                    amount_cents=amounts_by_share[share_index][index] * sign,
                    date=add_months(intent.purchase_date, index),
                    period_label=add_months_to_period(first_period, index),
                    direction=intent.direction,
                    condition=intent.condition,
                    payment_method=intent.payment_method,
                    settled=settled,
                    confirmation_date=self._resolve_confirmation_date(intent, settled, index),
                    due_date=add_months(intent.due_date, index) if intent.due_date else None,
                    series_id=series_id,
                    occurrence_index=index + 1 if series_id else None,
                    occurrence_total=occurrences if series_id else None,
                    payer_id=share.payer_id,
                    category_id=intent.category_id,
                    account_id=intent.account_id,
                    card_id=intent.card_id,
                    audit_note=note,
                    is_split=intent.split,
                ))

        logger.debug(
            f"Expanded {intent.condition.value} intent into {len(entries)} entries"
            f" (series={series_id})"
        )
        return entries

    def _resolve_settlement(self, intent: LedgerEntryIntent, index: int) -> SettlementState:
        if intent.payment_method is PaymentMethod.CREDIT_CARD:
            return SettlementState.NOT_APPLICABLE

        initial = bool(intent.settled)
        if intent.condition.is_series and index > 0:
            return SettlementState.UNSETTLED

        return SettlementState.from_flag(initial)

    def _resolve_confirmation_date(
        self,
        intent: LedgerEntryIntent,
        settled: SettlementState,
        index: int,
    ) -> date | None:
        if intent.payment_method is not PaymentMethod.BILLED_SLIP:
            return None
        if settled is not SettlementState.SETTLED:
            return None
        if intent.confirmation_date:
            return add_months(intent.confirmation_date, index)
        return self._today()
