"""
Statement Importer Module

Writes reviewed statement transactions into the ledger. Each transaction
becomes a settled single-occurrence intent, expanded and persisted in one
atomic write. Transactions whose stable id is already recorded on the account
are skipped.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ledger.errors import ExpansionConfigError, InvalidBatchError
from ledger.expander import LedgerExpander
from ledger.intents import LedgerEntryIntent
from ledger.models import (
    AccountKind,
    Condition,
    CorpusQuery,
    LedgerEntry,
    PaymentMethod,
)
from ledger.rate_limit import SlidingWindowRateLimiter
from ledger.store import LedgerStore

from .config import load_settings
from .duplicate_detector import stable_id_pattern
from .mapper import ColumnMapping, TransactionMapper
from .models import CanonicalTransaction
from .parsers import StatementParser
from .parsers.base import RowWarning

logger = logging.getLogger(__name__)

STABLE_ID_IN_NOTE = re.compile(r"FITID:\s*([^\s|]+)")


class ImportStatus(Enum):
    IMPORTED = "imported"
    NOOP = "noop"


@dataclass
class ImportDefaults:
    """Values applied to transactions the user left unset."""

    category_id: str | None = None
    payer_id: str | None = None
    payment_method: PaymentMethod | None = None


@dataclass
class ImportResult:
    """Outcome of one import."""

    status: ImportStatus
    entries: list[LedgerEntry] = field(default_factory=list)
    skipped_count: int = 0
    rejected: list[RowWarning] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.entries)

    @property
    def message(self) -> str:
        if self.status is ImportStatus.NOOP:
            return "All transactions were already imported."

        noun = "transaction" if self.imported_count == 1 else "transactions"
        message = f"{self.imported_count} {noun} imported"
        if self.skipped_count:
            message += f", {self.skipped_count} already imported skipped"
        return message

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "imported_count": self.imported_count,
            "skipped_count": self.skipped_count,
            "rejected_count": len(self.rejected),
            "message": self.message,
        }


def extract_stable_ids(notes: list[str | None]) -> set[str]:
    """Collect every ``FITID: <id>`` recorded in audit notes."""
    found = set()
    for note in notes:
        if note:
            found.update(STABLE_ID_IN_NOTE.findall(note))
    return found


class StatementImporter:
    """Imports statement transactions into a ledger account.

    Usage:
        importer = StatementImporter(store, rate_limiter=SlidingWindowRateLimiter.from_env())
        result = importer.import_transactions("user-1", "acct-1", transactions)
    """

    def __init__(
        self,
        store: LedgerStore,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        expander: LedgerExpander | None = None,
        config_dir: Path | str | None = None,
    ):
        """Initialize the importer.

        Args:
            store: Ledger persistence
            rate_limiter: Admission control per user; no limit when omitted
            expander: Expander turning intents into entries
            config_dir: Directory holding import_settings.yaml
        """
        self.store = store
        self.rate_limiter = rate_limiter
        self.expander = expander or LedgerExpander()
        self.config_dir = config_dir
        self.max_batch_size = load_settings(config_dir)["import"]["max_batch_size"]

    def existing_stable_ids(
        self,
        user_id: str,
        account_id: str,
        account_kind: AccountKind = AccountKind.BANK,
    ) -> set[str]:
        entries = self.store.find_entries(CorpusQuery(
            user_id=user_id,
            account_id=account_id,
            account_kind=account_kind,
        ))
        return extract_stable_ids([entry.audit_note for entry in entries])

    def build_intent(
        self,
        transaction: CanonicalTransaction,
        account_id: str,
        account_kind: AccountKind,
        defaults: ImportDefaults,
    ) -> LedgerEntryIntent:
        """Turn a reviewed transaction into a settled single intent."""
        if account_kind is AccountKind.CARD:
            payment_method = PaymentMethod.CREDIT_CARD
        else:
            payment_method = defaults.payment_method or transaction.payment_hint

        return LedgerEntryIntent(
            description=transaction.description,
            amount=transaction.amount,
            purchase_date=transaction.posted_date,
            direction=transaction.direction,
            condition=Condition.SINGLE,
            payment_method=payment_method,
            settled=True,
            payer_id=transaction.payer_id or defaults.payer_id,
            category_id=transaction.category_id or defaults.category_id,
            account_id=account_id if account_kind is AccountKind.BANK else None,
            card_id=account_id if account_kind is AccountKind.CARD else None,
        )

    def _import_note(self, transaction: CanonicalTransaction) -> str | None:
        note = transaction.audit_note
        if not transaction.external_id:
            return note
        if note and stable_id_pattern(transaction.external_id).search(note):
            return note

        parts = [f"FITID: {transaction.external_id}", note]
        return " | ".join(part for part in parts if part)

    def import_transactions(
        self,
        user_id: str,
        account_id: str,
        transactions: list[CanonicalTransaction],
        account_kind: AccountKind | str = AccountKind.BANK,
        defaults: ImportDefaults | None = None,
    ) -> ImportResult:
        """Import reviewed transactions.

        Args:
            user_id: Owner of the ledger
            account_id: Bank account or card receiving the entries
            transactions: Transactions selected for import
            account_kind: Whether account_id names a bank account or a card
            defaults: Category, payer and payment method for unset fields

        Returns:
            ImportResult; NOOP when every transaction was already imported

        Raises:
            RateLimitExceeded: If the user has used up the import window
            InvalidBatchError: If the batch is empty or too large
            ExpansionConfigError: If a transaction cannot form a valid entry
            PersistenceFailure: If the write fails (nothing is written)
        """
        account_kind = AccountKind.parse(account_kind)
        defaults = defaults or ImportDefaults()

        if self.rate_limiter is not None:
            self.rate_limiter.check(user_id)

        if not transactions:
            raise InvalidBatchError("Select at least one transaction to import")
        if len(transactions) > self.max_batch_size:
            raise InvalidBatchError(
                f"At most {self.max_batch_size} transactions can be imported at once"
            )

        to_import = transactions
        skipped = 0
        if any(t.external_id for t in transactions):
            known = set(self.existing_stable_ids(user_id, account_id, account_kind))
            to_import = []
            for transaction in transactions:
                if transaction.external_id:
                    if transaction.external_id in known:
                        continue
                    known.add(transaction.external_id)
                to_import.append(transaction)
            skipped = len(transactions) - len(to_import)

        if not to_import:
            logger.info(f"Import for account {account_id}: all {skipped} transactions already imported")
            return ImportResult(status=ImportStatus.NOOP, skipped_count=skipped)

        entries = []
        for transaction in to_import:
            try:
                intent = self.build_intent(transaction, account_id, account_kind, defaults)
            except ValueError as e:
                raise ExpansionConfigError(
                    f"Transaction {transaction.description!r} is invalid", details=e
                ) from e
            entries.extend(
                self.expander.expand(intent, user_id, audit_note=self._import_note(transaction))
            )

        stored = self.store.insert_entries(entries)

        if self.rate_limiter is not None:
            self.rate_limiter.record(user_id)

        logger.info(
            f"Imported {len(stored)} transactions into account {account_id}"
            f" ({skipped} skipped as already imported)"
        )
        return ImportResult(status=ImportStatus.IMPORTED, entries=stored, skipped_count=skipped)

    def import_statement(
        self,
        user_id: str,
        account_id: str,
        content: str,
        account_kind: AccountKind | str = AccountKind.BANK,
        format: str = "auto",
        mapping: ColumnMapping | dict | None = None,
        defaults: ImportDefaults | None = None,
    ) -> ImportResult:
        """Parse, map and import a statement file in one call.

        Rows that cannot be read are reported in ``rejected`` and not imported.

        Raises:
            LedgerError: File-level parse errors, plus everything
                import_transactions raises
        """
        parsed = StatementParser().parse(content, format=format)
        if not parsed.success:
            error = parsed.file_errors[0]
            logger.warning(f"Statement rejected: {error}")
            raise error

        mapped = TransactionMapper(config_dir=self.config_dir).map_statement(parsed, mapping)
        if not mapped.transactions:
            raise InvalidBatchError("No readable transactions in the statement")

        result = self.import_transactions(
            user_id, account_id, mapped.transactions, account_kind, defaults
        )
        result.rejected = mapped.rejected
        return result
