"""
Pytest configuration and fixtures for statement import and ledger tests.
"""

import sys
from datetime import date
from itertools import count
from pathlib import Path

import pytest

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "python"))

from ledger.database import create_db_engine, init_schema  # noqa: E402
from ledger.models import (  # noqa: E402
    Condition,
    Direction,
    LedgerEntry,
    PaymentMethod,
    SettlementState,
)
from ledger.dates import period_label  # noqa: E402
from ledger.store import InMemoryLedgerStore  # noqa: E402


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def fixed_today():
    """Clock returning a fixed date."""
    return lambda: date(2024, 1, 20)


@pytest.fixture
def series_ids():
    """Deterministic series id factory."""
    counter = count(1)
    return lambda: f"series-{next(counter)}"


def make_entry(
    description: str,
    amount_cents: int,
    on: date,
    entry_id: str | None = None,
    user_id: str = "user-1",
    account_id: str | None = "acct-1",
    card_id: str | None = None,
    category_id: str | None = None,
    audit_note: str | None = None,
    **extra,
) -> LedgerEntry:
    """Build a persisted-looking ledger entry."""
    return LedgerEntry(
        id=entry_id,
        user_id=user_id,
        description=description,
        amount_cents=amount_cents,
        date=on,
        period_label=period_label(on),
        direction=Direction.EXPENSE if amount_cents < 0 else Direction.INCOME,
        condition=extra.pop("condition", Condition.SINGLE),
        payment_method=extra.pop("payment_method", PaymentMethod.DEBIT_CARD),
        settled=extra.pop("settled", SettlementState.SETTLED),
        account_id=account_id,
        card_id=card_id,
        category_id=category_id,
        audit_note=audit_note,
        **extra,
    )


@pytest.fixture
def entry_factory():
    """Return the ledger entry builder."""
    return make_entry


@pytest.fixture
def memory_store() -> InMemoryLedgerStore:
    """Empty in-memory ledger store."""
    return InMemoryLedgerStore()


@pytest.fixture
def seeded_store() -> InMemoryLedgerStore:
    """Store with a small categorized history on acct-1."""
    return InMemoryLedgerStore([
        make_entry("NETFLIX", -3990, date(2024, 1, 10), entry_id="e-netflix", category_id="streaming"),
        make_entry(
            "Supermercado Extra", -15000, date(2023, 12, 15),
            entry_id="e-market", category_id="groceries",
            audit_note="Imported via OFX on 16/12/2023 | FITID: 2023121501",
        ),
        make_entry("Salário", 300000, date(2024, 1, 1), entry_id="e-salary", category_id="salary"),
        make_entry("Uber Trip", -2500, date(2024, 1, 5), entry_id="e-uber", category_id="transport"),
        make_entry("Padaria", -1200, date(2024, 1, 8), entry_id="e-bakery"),
        make_entry(
            "NETFLIX", -3990, date(2024, 1, 10), entry_id="e-other-user",
            user_id="user-2", category_id="other",
        ),
    ])


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine with the ledger schema."""
    engine = create_db_engine("sqlite://")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sgml_ofx() -> str:
    """OFX 1.x statement with unclosed leaf tags."""
    return """OFXHEADER:100
DATA:OFXSGML
VERSION:102
SECURITY:NONE
ENCODING:USASCII
CHARSET:1252
COMPRESSION:NONE
OLDFILEUID:NONE
NEWFILEUID:NONE

<OFX>
<SIGNONMSGSRSV1>
<SONRS>
<STATUS>
<CODE>0
<SEVERITY>INFO
</STATUS>
<DTSERVER>20240105120000[-3:BRT]
<LANGUAGE>POR
</SONRS>
</SIGNONMSGSRSV1>
<BANKMSGSRSV1>
<STMTTRNRS>
<TRNUID>1001
<STATUS>
<CODE>0
<SEVERITY>INFO
</STATUS>
<STMTRS>
<CURDEF>BRL
<BANKACCTFROM>
<BANKID>341
<BRANCHID>0001
<ACCTID>12345-6
<ACCTTYPE>CHECKING
</BANKACCTFROM>
<BANKTRANLIST>
<DTSTART>20231201000000[-3:BRT]
<DTEND>20240105000000[-3:BRT]
<STMTTRN>
<TRNTYPE>DEBIT
<DTPOSTED>20231215120000[-3:BRT]
<TRNAMT>-150.00
<FITID>2023121501
<NAME>COMPRA SUPERMERCADO EXTRA
<MEMO>SUPERMERCADO EXTRA LOJA 12
</STMTTRN>
<STMTTRN>
<TRNTYPE>CREDIT
<DTPOSTED>20240101080000[-3:BRT]
<TRNAMT>3000.00
<FITID>2024010101
<NAME>SALARIO EMPRESA
</STMTTRN>
<STMTTRN>
<TRNTYPE>CHECK
<DTPOSTED>20240103
<TRNAMT>-75,50
<FITID>2024010301
<CHECKNUM>000123
<REFNUM>REF9
<MEMO>Cheque compensado
</STMTTRN>
</BANKTRANLIST>
<LEDGERBAL>
<BALAMT>2774.50
<DTASOF>20240105
</LEDGERBAL>
</STMTRS>
</STMTTRNRS>
</BANKMSGSRSV1>
</OFX>
"""


@pytest.fixture
def xml_ofx() -> str:
    """OFX 2.x credit card statement with closed tags."""
    return """<?xml version="1.0" encoding="UTF-8" standalone="no"?>
<?OFX OFXHEADER="200" VERSION="220" SECURITY="NONE" OLDFILEUID="NONE" NEWFILEUID="NONE"?>
<OFX>
  <CREDITCARDMSGSRSV1>
    <CCSTMTTRNRS>
      <TRNUID>1</TRNUID>
      <CCSTMTRS>
        <CURDEF>USD</CURDEF>
        <CCACCTFROM>
          <ACCTID>4111********1111</ACCTID>
        </CCACCTFROM>
        <BANKTRANLIST>
          <DTSTART>20240101</DTSTART>
          <DTEND>20240131</DTEND>
          <STMTTRN>
            <TRNTYPE>DEBIT</TRNTYPE>
            <DTPOSTED>20240112</DTPOSTED>
            <TRNAMT>-39.90</TRNAMT>
            <FITID>CC-0001</FITID>
            <NAME>NETFLIX.COM &amp; CO</NAME>
            <MEMO></MEMO>
          </STMTTRN>
        </BANKTRANLIST>
      </CCSTMTRS>
    </CCSTMTTRNRS>
  </CREDITCARDMSGSRSV1>
</OFX>
"""


@pytest.fixture
def semicolon_csv() -> str:
    """Delimited export using semicolons and decimal commas."""
    return "Data;Descrição;Valor\n15/12/2023;Supermercado;-150,00\n01/01/2024;Salário;3000,00\n"


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Keep rate limit settings at their defaults."""
    monkeypatch.delenv("IMPORT_RATE_LIMIT_MAX_IMPORTS", raising=False)
    monkeypatch.delenv("IMPORT_RATE_LIMIT_WINDOW_SECONDS", raising=False)
    yield
