"""
SQL schema used by the reference stores.

Column names are the storage vocabulary; LedgerEntry field names never leak
past SqlLedgerStore.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

ledger_entries = Table(
    "ledger_entries",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False),
    Column("name", String(255), nullable=False),
    Column("amount_cents", BigInteger, nullable=False),
    Column("purchase_date", Date, nullable=False),
    Column("period", String(7), nullable=False),
    Column("transaction_type", String(16), nullable=False),
    Column("condition", String(16), nullable=False),
    Column("payment_method", String(32), nullable=False),
    Column("is_settled", Boolean, nullable=True),
    Column("payment_confirmed_on", Date, nullable=True),
    Column("due_date", Date, nullable=True),
    Column("series_id", String(36), nullable=True),
    Column("current_installment", Integer, nullable=True),
    Column("installment_total", Integer, nullable=True),
    Column("payer_id", String(64), nullable=True),
    Column("category_id", String(64), nullable=True),
    Column("account_id", String(64), nullable=True),
    Column("card_id", String(64), nullable=True),
    Column("note", Text, nullable=True),
    Column("is_divided", Boolean, nullable=False, default=False),
    Index("ix_ledger_entries_user_account_date", "user_id", "account_id", "purchase_date"),
    Index("ix_ledger_entries_series", "series_id"),
)

import_attempts = Table(
    "import_attempts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("rate_key", String(128), nullable=False, index=True),
    Column("attempted_at", DateTime, nullable=False),
)
