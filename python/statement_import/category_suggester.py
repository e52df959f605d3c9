"""
Category Suggester Module

Suggests a category for an imported transaction from the user's own
categorized history.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path

from ledger.models import CorpusQuery, Direction, LedgerEntry
from ledger.store import LedgerStore

from .config import load_settings
from .models import CanonicalTransaction
from .similarity import normalize_description, similarity

logger = logging.getLogger(__name__)


class Confidence(Enum):
    """Confidence band of a suggestion."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SuggestionReason(Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"


@dataclass
class CategorySuggestion:
    """Suggested category for one transaction."""

    category_id: str
    confidence: Confidence
    score: float
    reason: SuggestionReason

    def to_dict(self) -> dict:
        return {
            "category_id": self.category_id,
            "confidence": self.confidence.value,
            "score": round(self.score, 4),
            "reason": self.reason.value,
        }


class CategorySuggester:
    """Suggests categories from historical ledger entries.

    An exact (case-insensitive) description match wins outright. Otherwise
    every categorized entry is scored against the description, optionally
    blended with amount closeness, and the category with the best average
    score is suggested if it reaches the low threshold.
    """

    def __init__(
        self,
        store: LedgerStore,
        config_dir: Path | str | None = None,
    ):
        """Initialize the suggester.

        Args:
            store: Source of categorized ledger history
            config_dir: Directory holding import_settings.yaml
        """
        self.store = store
        self.settings = load_settings(config_dir)["categories"]

    def _confidence(self, score: float) -> Confidence | None:
        if score >= self.settings["high_threshold"]:
            return Confidence.HIGH
        if score >= self.settings["medium_threshold"]:
            return Confidence.MEDIUM
        if score >= self.settings["low_threshold"]:
            return Confidence.LOW
        return None

    def _amount_similarity(self, amount: Decimal, other: Decimal) -> float:
        normalizer = Decimal(str(self.settings["amount_normalizer"]))
        difference = abs(abs(amount) - abs(other))
        return max(0.0, 1.0 - float(difference / normalizer))

    def suggest_from_corpus(
        self,
        description: str,
        corpus: list[LedgerEntry],
        amount: Decimal | None = None,
    ) -> CategorySuggestion | None:
        """Pick a category for a description from an already fetched corpus.

        Args:
            description: Transaction description
            corpus: Categorized ledger entries
            amount: Transaction amount, blended into the score when given

        Returns:
            CategorySuggestion, or None when nothing scores high enough
        """
        name = normalize_description(description)
        if len(name) < self.settings["min_description_length"]:
            return None

        categorized = [entry for entry in corpus if entry.category_id]
        if not categorized:
            return None

        for entry in categorized:
            if normalize_description(entry.description) == name:
                return CategorySuggestion(
                    category_id=entry.category_id,
                    confidence=Confidence.HIGH,
                    score=1.0,
                    reason=SuggestionReason.EXACT,
                )

        text_weight = self.settings["text_weight"]
        amount_weight = self.settings["amount_weight"]
        totals: dict[str, list[float]] = {}

        for entry in categorized:
            score = similarity(name, normalize_description(entry.description))
            if amount is not None:
                score = (
                    score * text_weight
                    + self._amount_similarity(amount, entry.amount) * amount_weight
                )
            totals.setdefault(entry.category_id, []).append(score)

        best_category = None
        best_score = 0.0
        for category_id, scores in totals.items():
            average = sum(scores) / len(scores)
            if best_category is None or average > best_score:
                best_category, best_score = category_id, average

        confidence = self._confidence(best_score)
        if best_category is None or confidence is None:
            return None

        return CategorySuggestion(
            category_id=best_category,
            confidence=confidence,
            score=best_score,
            reason=SuggestionReason.FUZZY,
        )

    def suggest(
        self,
        user_id: str,
        description: str,
        amount: Decimal | None = None,
        direction: Direction | None = None,
    ) -> CategorySuggestion | None:
        """Suggest a category for one transaction.

        Args:
            user_id: Owner of the ledger
            description: Transaction description
            amount: Optional amount used to break ties between similar names
            direction: Only learn from entries of this direction

        Returns:
            CategorySuggestion or None
        """
        if len(normalize_description(description)) < self.settings["min_description_length"]:
            return None

        corpus = self.store.find_entries(CorpusQuery(
            user_id=user_id,
            direction=direction,
            categorized_only=True,
            limit=self.settings["single_corpus_limit"],
        ))

        return self.suggest_from_corpus(description, corpus, amount)

    def suggest_batch(
        self,
        user_id: str,
        transactions: list[CanonicalTransaction],
    ) -> list[CategorySuggestion | None]:
        """Suggest categories for many transactions with one corpus fetch.

        Each transaction only learns from history of its own direction.

        Returns:
            One suggestion (or None) per transaction, in input order
        """
        if not transactions:
            return []

        corpus = self.store.find_entries(CorpusQuery(
            user_id=user_id,
            categorized_only=True,
            limit=self.settings["batch_corpus_limit"],
        ))

        by_direction: dict[Direction, list[LedgerEntry]] = {}
        for entry in corpus:
            by_direction.setdefault(entry.direction, []).append(entry)

        suggestions = [
            self.suggest_from_corpus(
                txn.description,
                by_direction.get(txn.direction, []),
                txn.amount,
            )
            for txn in transactions
        ]

        found = sum(1 for s in suggestions if s)
        logger.info(f"Suggested categories for {found} of {len(transactions)} transactions")
        return suggestions
