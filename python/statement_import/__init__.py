"""
Statement Import Module

Parses OFX and delimited bank statements, normalizes transactions, flags
duplicates of existing ledger entries and suggests categories from history.
"""

from .models import CanonicalTransaction
from .parsers import (
    StatementParser,
    StatementParseResult,
    RowWarning,
    OfxStatement,
    detect_delimiter,
    parse_delimited,
    parse_ofx,
)
from .mapper import (
    ColumnMapping,
    MappingResult,
    TransactionMapper,
    parse_currency,
    parse_date,
    sanitize_description,
    validate_column_mapping,
)
from .duplicate_detector import (
    DuplicateDetector,
    DuplicateMatch,
    DeduplicationResult,
    MatchReason,
)
from .category_suggester import (
    CategorySuggester,
    CategorySuggestion,
    Confidence,
    SuggestionReason,
)
from .importer import ImportDefaults, ImportResult, ImportStatus, StatementImporter

__all__ = [
    # Parsing
    "CanonicalTransaction",
    "StatementParser",
    "StatementParseResult",
    "RowWarning",
    "OfxStatement",
    "detect_delimiter",
    "parse_delimited",
    "parse_ofx",
    # Mapping
    "ColumnMapping",
    "MappingResult",
    "TransactionMapper",
    "parse_currency",
    "parse_date",
    "sanitize_description",
    "validate_column_mapping",
    # Duplicate Detection
    "DuplicateDetector",
    "DuplicateMatch",
    "DeduplicationResult",
    "MatchReason",
    # Category Suggestion
    "CategorySuggester",
    "CategorySuggestion",
    "Confidence",
    "SuggestionReason",
    # Import
    "ImportDefaults",
    "ImportResult",
    "ImportStatus",
    "StatementImporter",
]
