"""
Ledger Store Module

Persistence collaborator contract plus two implementations: an in-memory store
(tests, replay) and a SQLAlchemy store. Multi-row inserts are all-or-nothing.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import PersistenceFailure
from .models import (
    AccountKind,
    Condition,
    CorpusQuery,
    Direction,
    LedgerEntry,
    PaymentMethod,
    SettlementState,
)
from .schema import ledger_entries

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "description",
    "amount_cents",
    "category_id",
    "audit_note",
    "payer_id",
    "account_id",
    "card_id",
    "due_date",
    "confirmation_date",
    "settled",
}


class LedgerStore(ABC):
    """Storage collaborator for ledger entries."""

    @abstractmethod
    def find_entries(self, query: CorpusQuery) -> list[LedgerEntry]:
        """Return a bounded list of entries matching the query, newest first."""

    @abstractmethod
    def insert_entries(self, entries: list[LedgerEntry]) -> list[LedgerEntry]:
        """Persist entries atomically and return them with ids assigned.

        Raises:
            PersistenceFailure: If the write fails; nothing is persisted
        """

    @abstractmethod
    def get_entry(self, user_id: str, entry_id: str) -> LedgerEntry | None:
        """Return one entry owned by the user."""

    @abstractmethod
    def find_series(self, user_id: str, series_id: str) -> list[LedgerEntry]:
        """Return all entries of a series ordered by date."""

    @abstractmethod
    def update_entries(self, user_id: str, changes: dict[str, dict[str, Any]]) -> int:
        """Apply per-entry field changes atomically.

        Args:
            user_id: Owner of the entries
            changes: entry id -> {field name: new value}

        Returns:
            Number of entries updated
        """

    @abstractmethod
    def delete_entries(self, user_id: str, entry_ids: list[str]) -> int:
        """Delete entries atomically and return how many were removed."""


def _check_fields(changes: dict[str, dict[str, Any]]) -> None:
    for entry_id, fields in changes.items():
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields {sorted(unknown)} of entry {entry_id}")


def _matches(entry: LedgerEntry, query: CorpusQuery) -> bool:
    if entry.user_id != query.user_id:
        return False
    if query.account_id is not None:
        owner = entry.card_id if query.account_kind is AccountKind.CARD else entry.account_id
        if owner != query.account_id:
            return False
    if query.start_date and entry.date < query.start_date:
        return False
    if query.end_date and entry.date > query.end_date:
        return False
    if query.amounts_cents is not None and entry.amount_cents not in query.amounts_cents:
        return False
    if query.direction is not None and entry.direction is not query.direction:
        return False
    if query.categorized_only and not entry.category_id:
        return False
    return True


class InMemoryLedgerStore(LedgerStore):
    """Dictionary-backed store; single process only."""

    def __init__(self, entries: list[LedgerEntry] | None = None):
        self._entries: dict[str, LedgerEntry] = {}
        if entries:
            self.insert_entries(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def all_entries(self) -> list[LedgerEntry]:
        return [entry.copy() for entry in self._entries.values()]

    def find_entries(self, query: CorpusQuery) -> list[LedgerEntry]:
        found = [entry for entry in self._entries.values() if _matches(entry, query)]
        found.sort(key=lambda e: e.date, reverse=True)
        if query.limit is not None:
            found = found[:query.limit]
        return [entry.copy() for entry in found]

    def insert_entries(self, entries: list[LedgerEntry]) -> list[LedgerEntry]:
        staged = {}
        for entry in entries:
            entry_id = entry.id or str(uuid.uuid4())
            if entry_id in self._entries or entry_id in staged:
                raise PersistenceFailure(f"Duplicate entry id: {entry_id}")
            staged[entry_id] = entry.copy(id=entry_id)

        self._entries.update(staged)
        return [entry.copy() for entry in staged.values()]

    def get_entry(self, user_id: str, entry_id: str) -> LedgerEntry | None:
        entry = self._entries.get(entry_id)
        if entry is None or entry.user_id != user_id:
            return None
        return entry.copy()

    def find_series(self, user_id: str, series_id: str) -> list[LedgerEntry]:
        series = [
            entry.copy() for entry in self._entries.values()
            if entry.series_id == series_id and entry.user_id == user_id
        ]
        series.sort(key=lambda e: (e.date, e.occurrence_index or 0))
        return series

    def update_entries(self, user_id: str, changes: dict[str, dict[str, Any]]) -> int:
        _check_fields(changes)
        targets = {
            entry_id: fields for entry_id, fields in changes.items()
            if self.get_entry(user_id, entry_id) is not None
        }
        for entry_id, fields in targets.items():
            self._entries[entry_id] = self._entries[entry_id].copy(**fields)
        return len(targets)

    def delete_entries(self, user_id: str, entry_ids: list[str]) -> int:
        removed = 0
        for entry_id in entry_ids:
            if self.get_entry(user_id, entry_id) is not None:
                del self._entries[entry_id]
                removed += 1
        return removed


# LedgerEntry field -> storage column
COLUMN_NAMES = {
    "description": "name",
    "amount_cents": "amount_cents",
    "category_id": "category_id",
    "audit_note": "note",
    "payer_id": "payer_id",
    "account_id": "account_id",
    "card_id": "card_id",
    "due_date": "due_date",
    "confirmation_date": "payment_confirmed_on",
    "settled": "is_settled",
}


def entry_to_row(entry: LedgerEntry) -> dict[str, Any]:
    """Serialize an entry into storage columns."""
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "name": entry.description,
        "amount_cents": entry.amount_cents,
        "purchase_date": entry.date,
        "period": entry.period_label,
        "transaction_type": entry.direction.value,
        "condition": entry.condition.value,
        "payment_method": entry.payment_method.value,
        "is_settled": entry.settled.to_flag(),
        "payment_confirmed_on": entry.confirmation_date,
        "due_date": entry.due_date,
        "series_id": entry.series_id,
        "current_installment": entry.occurrence_index,
        "installment_total": entry.occurrence_total,
        "payer_id": entry.payer_id,
        "category_id": entry.category_id,
        "account_id": entry.account_id,
        "card_id": entry.card_id,
        "note": entry.audit_note,
        "is_divided": entry.is_split,
    }


def row_to_entry(row: Any) -> LedgerEntry:
    """Deserialize a storage row."""
    return LedgerEntry(
        id=row["id"],
        user_id=row["user_id"],
        description=row["name"],
        amount_cents=int(row["amount_cents"]),
        date=row["purchase_date"],
        period_label=row["period"],
        direction=Direction(row["transaction_type"]),
        condition=Condition(row["condition"]),
        payment_method=PaymentMethod(row["payment_method"]),
        settled=SettlementState.from_flag(row["is_settled"]),
        confirmation_date=row["payment_confirmed_on"],
        due_date=row["due_date"],
        series_id=row["series_id"],
        occurrence_index=row["current_installment"],
        occurrence_total=row["installment_total"],
        payer_id=row["payer_id"],
        category_id=row["category_id"],
        account_id=row["account_id"],
        card_id=row["card_id"],
        audit_note=row["note"],
        is_split=bool(row["is_divided"]),
    )


def _column_values(fields: dict[str, Any]) -> dict[str, Any]:
    values = {}
    for name, value in fields.items():
        if name == "settled":
            value = value.to_flag()
        values[COLUMN_NAMES[name]] = value
    return values


class SqlLedgerStore(LedgerStore):
    """SQLAlchemy-backed store."""

    def __init__(self, engine: Engine):
        """Initialize the store.

        Args:
            engine: SQLAlchemy engine (see ledger.database.create_db_engine)
        """
        self.engine = engine

    def find_entries(self, query: CorpusQuery) -> list[LedgerEntry]:
        table = ledger_entries
        stmt = select(table).where(table.c.user_id == query.user_id)

        if query.account_id is not None:
            owner = table.c.card_id if query.account_kind is AccountKind.CARD else table.c.account_id
            stmt = stmt.where(owner == query.account_id)
        if query.start_date:
            stmt = stmt.where(table.c.purchase_date >= query.start_date)
        if query.end_date:
            stmt = stmt.where(table.c.purchase_date <= query.end_date)
        if query.amounts_cents is not None:
            stmt = stmt.where(table.c.amount_cents.in_(sorted(query.amounts_cents)))
        if query.direction is not None:
            stmt = stmt.where(table.c.transaction_type == query.direction.value)
        if query.categorized_only:
            stmt = stmt.where(table.c.category_id.is_not(None))

        stmt = stmt.order_by(table.c.purchase_date.desc(), table.c.id)
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch ledger corpus: {e}")
            raise PersistenceFailure("Failed to fetch ledger entries", details=e) from e

        return [row_to_entry(row) for row in rows]

    def insert_entries(self, entries: list[LedgerEntry]) -> list[LedgerEntry]:
        stored = [entry.copy(id=entry.id or str(uuid.uuid4())) for entry in entries]
        if not stored:
            return []

        try:
            with self.engine.begin() as conn:
                conn.execute(ledger_entries.insert(), [entry_to_row(entry) for entry in stored])
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert {len(stored)} ledger entries: {e}")
            raise PersistenceFailure("Failed to save ledger entries", details=e) from e

        return stored

    def get_entry(self, user_id: str, entry_id: str) -> LedgerEntry | None:
        stmt = select(ledger_entries).where(
            ledger_entries.c.id == entry_id,
            ledger_entries.c.user_id == user_id,
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return row_to_entry(row) if row else None

    def find_series(self, user_id: str, series_id: str) -> list[LedgerEntry]:
        stmt = (
            select(ledger_entries)
            .where(
                ledger_entries.c.series_id == series_id,
                ledger_entries.c.user_id == user_id,
            )
            .order_by(ledger_entries.c.purchase_date, ledger_entries.c.current_installment)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [row_to_entry(row) for row in rows]

    def update_entries(self, user_id: str, changes: dict[str, dict[str, Any]]) -> int:
        _check_fields(changes)
        updated = 0
        try:
            with self.engine.begin() as conn:
                for entry_id, fields in changes.items():
                    if not fields:
                        continue
                    result = conn.execute(
                        update(ledger_entries)
                        .where(
                            ledger_entries.c.id == entry_id,
                            ledger_entries.c.user_id == user_id,
                        )
                        .values(**_column_values(fields))
                    )
                    updated += result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Failed to update ledger entries: {e}")
            raise PersistenceFailure("Failed to update ledger entries", details=e) from e
        return updated

    def delete_entries(self, user_id: str, entry_ids: list[str]) -> int:
        if not entry_ids:
            return 0
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    delete(ledger_entries).where(
                        ledger_entries.c.id.in_(entry_ids),
                        ledger_entries.c.user_id == user_id,
                    )
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete ledger entries: {e}")
            raise PersistenceFailure("Failed to delete ledger entries", details=e) from e
        return result.rowcount
