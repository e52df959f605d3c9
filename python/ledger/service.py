"""
Ledger Service

Direct user entry: validate an intent, expand it and persist every resulting
entry in one atomic write.
"""

import logging
from typing import Any

from .errors import PersistenceFailure
from .expander import LedgerExpander
from .intents import LedgerEntryIntent, parse_intent
from .models import LedgerEntry
from .store import LedgerStore

logger = logging.getLogger(__name__)


class LedgerService:
    """Creates ledger entries from user intents."""

    def __init__(self, store: LedgerStore, expander: LedgerExpander | None = None):
        self.store = store
        self.expander = expander or LedgerExpander()

    def create_from_intent(
        self,
        user_id: str,
        intent: LedgerEntryIntent | dict[str, Any],
    ) -> list[LedgerEntry]:
        """Expand an intent and persist the entries.

        Raises:
            ExpansionConfigError: If the intent is invalid (nothing is written)
            PersistenceFailure: If the write fails (nothing is written)
        """
        intent = parse_intent(intent)
        entries = self.expander.expand(intent, user_id=user_id)
        if not entries:
            raise PersistenceFailure("Expansion produced no entries")

        stored = self.store.insert_entries(entries)
        logger.info(
            f"Created {len(stored)} {intent.condition.value} entries for user {user_id}"
        )
        return stored
