"""
Duplicate Transaction Detector Module

Finds ledger entries that an imported transaction probably duplicates. The
comparison corpus comes from a LedgerStore: same user, same account, dates
within the tolerance window and the same signed amount.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path

from ledger.models import AccountKind, CorpusQuery, LedgerEntry
from ledger.store import LedgerStore

from .config import load_settings
from .models import CanonicalTransaction
from .similarity import normalize_description, similarity

logger = logging.getLogger(__name__)


class MatchReason(Enum):
    """Why an existing entry is considered a duplicate."""
    STABLE_ID = "stable_id"
    EXACT = "exact"
    SIMILAR = "similar"
    LIKELY = "likely"

    @property
    def rank(self) -> int:
        """Lower ranks sort first."""
        return list(MatchReason).index(self)


@dataclass
class DuplicateMatch:
    """An existing ledger entry matching an import candidate."""

    existing_entry_id: str | None
    reason: MatchReason
    similarity: float
    existing: LedgerEntry

    @property
    def is_definite(self) -> bool:
        return self.reason in (MatchReason.STABLE_ID, MatchReason.EXACT)

    def to_dict(self) -> dict:
        return {
            "existing_entry_id": self.existing_entry_id,
            "reason": self.reason.value,
            "similarity": round(self.similarity, 4),
            "existing": {
                "description": self.existing.description,
                "amount": str(self.existing.amount),
                "date": self.existing.date.isoformat(),
                "audit_note": self.existing.audit_note,
            },
        }


@dataclass
class DeduplicationResult:
    """Partition of an import batch into unique and duplicate candidates."""

    unique_transactions: list[CanonicalTransaction] = field(default_factory=list)
    duplicates: list[tuple[CanonicalTransaction, list[DuplicateMatch]]] = field(default_factory=list)
    stats: dict = field(default_factory=dict)

    @property
    def definite_duplicates(self) -> list[tuple[CanonicalTransaction, list[DuplicateMatch]]]:
        return [(txn, matches) for txn, matches in self.duplicates if matches[0].is_definite]

    @property
    def potential_duplicates(self) -> list[tuple[CanonicalTransaction, list[DuplicateMatch]]]:
        return [(txn, matches) for txn, matches in self.duplicates if not matches[0].is_definite]


def stable_id_pattern(external_id: str) -> re.Pattern:
    """Pattern finding ``FITID: <id>`` in an audit note."""
    return re.compile(rf"FITID:\s*{re.escape(external_id)}(?![^\s|])", re.IGNORECASE)


def sort_matches(matches: list[DuplicateMatch]) -> list[DuplicateMatch]:
    return sorted(matches, key=lambda m: (m.reason.rank, -m.similarity))


class DuplicateDetector:
    """Detects previously imported or manually entered transactions.

    Usage:
        detector = DuplicateDetector(store)
        matches = detector.detect("user-1", "acct-1", transaction)
        if matches:
            best = matches[0]
    """

    def __init__(
        self,
        store: LedgerStore,
        config_dir: Path | str | None = None,
    ):
        """Initialize the detector.

        Args:
            store: Source of the historical comparison corpus
            config_dir: Directory holding import_settings.yaml
        """
        self.store = store
        settings = load_settings(config_dir)["duplicates"]
        self.date_tolerance = timedelta(days=settings["date_tolerance_days"])
        self.similar_threshold = settings["similar_threshold"]
        self.likely_threshold = settings["likely_threshold"]
        self.min_description_length = settings["min_description_length"]
        self.corpus_limit = settings["corpus_limit"]

    def compare(
        self,
        candidate: CanonicalTransaction,
        existing: LedgerEntry,
    ) -> DuplicateMatch | None:
        """Compare one candidate with one ledger entry.

        The first rule that applies wins: stable id, exact, similar, likely.
        """
        if existing.amount_cents != candidate.amount_cents:
            return None

        days_apart = abs((candidate.posted_date - existing.date).days)
        if days_apart > self.date_tolerance.days:
            return None

        if candidate.external_id and existing.audit_note:
            if stable_id_pattern(candidate.external_id).search(existing.audit_note):
                return DuplicateMatch(existing.id, MatchReason.STABLE_ID, 1.0, existing)

        name = normalize_description(candidate.description)
        existing_name = normalize_description(existing.description)

        if days_apart == 0 and name == existing_name:
            return DuplicateMatch(existing.id, MatchReason.EXACT, 1.0, existing)

        score = similarity(name, existing_name)
        if score >= self.similar_threshold:
            return DuplicateMatch(existing.id, MatchReason.SIMILAR, score, existing)
        if score >= self.likely_threshold:
            return DuplicateMatch(existing.id, MatchReason.LIKELY, score, existing)

        return None

    def match_candidate(
        self,
        candidate: CanonicalTransaction,
        corpus: list[LedgerEntry],
    ) -> list[DuplicateMatch]:
        """Match one candidate against an already fetched corpus.

        Returns:
            Matches ordered by reason, then by descending similarity
        """
        if len(normalize_description(candidate.description)) < self.min_description_length:
            return []

        matches = []
        for existing in corpus:
            match = self.compare(candidate, existing)
            if match:
                matches.append(match)

        return sort_matches(matches)

    def detect(
        self,
        user_id: str,
        account_id: str,
        candidate: CanonicalTransaction,
        account_kind: AccountKind | str = AccountKind.BANK,
    ) -> list[DuplicateMatch]:
        """Find duplicates of a single transaction.

        Args:
            user_id: Owner of the ledger
            account_id: Bank account or card the statement belongs to
            candidate: Transaction to check
            account_kind: Whether account_id names a bank account or a card

        Returns:
            Matches ordered by reason, then by descending similarity
        """
        if len(normalize_description(candidate.description)) < self.min_description_length:
            return []

        corpus = self.store.find_entries(CorpusQuery(
            user_id=user_id,
            account_id=account_id,
            account_kind=AccountKind.parse(account_kind),
            start_date=candidate.posted_date - self.date_tolerance,
            end_date=candidate.posted_date + self.date_tolerance,
            amounts_cents={candidate.amount_cents},
            limit=self.corpus_limit,
        ))

        return self.match_candidate(candidate, corpus)

    def detect_batch(
        self,
        user_id: str,
        account_id: str,
        candidates: list[CanonicalTransaction],
        account_kind: AccountKind | str = AccountKind.BANK,
    ) -> list[list[DuplicateMatch]]:
        """Find duplicates for many transactions with one corpus fetch.

        Returns:
            One match list per candidate, in input order
        """
        if not candidates:
            return []

        dates = [c.posted_date for c in candidates]
        corpus = self.store.find_entries(CorpusQuery(
            user_id=user_id,
            account_id=account_id,
            account_kind=AccountKind.parse(account_kind),
            start_date=min(dates) - self.date_tolerance,
            end_date=max(dates) + self.date_tolerance,
            amounts_cents={c.amount_cents for c in candidates},
            limit=self.corpus_limit,
        ))

        results = [self.match_candidate(candidate, corpus) for candidate in candidates]

        flagged = sum(1 for matches in results if matches)
        logger.info(
            f"Duplicate check: {flagged} of {len(candidates)} transactions matched "
            f"against {len(corpus)} ledger entries"
        )
        return results

    def deduplicate(
        self,
        user_id: str,
        account_id: str,
        candidates: list[CanonicalTransaction],
        account_kind: AccountKind | str = AccountKind.BANK,
    ) -> DeduplicationResult:
        """Split a batch into unique transactions and duplicates."""
        result = DeduplicationResult()

        for candidate, matches in zip(
            candidates,
            self.detect_batch(user_id, account_id, candidates, account_kind),
        ):
            if matches:
                result.duplicates.append((candidate, matches))
            else:
                result.unique_transactions.append(candidate)

        total = len(candidates)
        result.stats = {
            "total_checked": total,
            "unique": len(result.unique_transactions),
            "potential_duplicates": len(result.potential_duplicates),
            "definite_duplicates": len(result.definite_duplicates),
            "duplicate_rate": len(result.duplicates) / total if total > 0 else 0,
        }

        return result
