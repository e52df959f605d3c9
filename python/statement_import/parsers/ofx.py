"""
OFX Statement Parser

Reads OFX 1.x (SGML, leaf tags left open) and OFX 2.x (XML) statements.
Both are tokenized the same way: a tag followed by text is a leaf value, a tag
followed directly by another tag opens an aggregate.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

from ledger.errors import (
    InvalidInputError,
    NoTransactionsError,
    StructuralParseError,
)

from .base import preprocess_content

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"<(/?)([A-Za-z0-9_.]+)>([^<]*)")
DECLARATION_PATTERN = re.compile(r"<\?.*?\?>", re.DOTALL)
ATTRIBUTE_PATTERN = re.compile(r'([A-Za-z0-9_]+)="([^"]*)"')
OFX_ROOT_PATTERN = re.compile(r"<OFX>", re.IGNORECASE)

DEFAULT_CURRENCY = "BRL"


@dataclass
class OfxAccount:
    """Account the statement belongs to."""

    account_id: str
    bank_id: str = ""
    branch_id: str | None = None
    account_type: str = "CHECKING"

    @property
    def is_credit_card(self) -> bool:
        return self.account_type == "CREDITLINE"


@dataclass
class OfxStatement:
    """Parsed OFX statement."""

    account: OfxAccount
    transactions: list[dict[str, str]] = field(default_factory=list)
    currency: str = DEFAULT_CURRENCY
    start_date: datetime | None = None
    end_date: datetime | None = None
    ledger_balance: Decimal | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)


def parse_ofx_date(value: str | None) -> datetime:
    """Parse an OFX timestamp.

    Only the first 14 characters (YYYYMMDDHHMMSS) are used; fractional seconds
    and the timezone suffix are ignored and the result is naive local time.

    Raises:
        ValueError: If the value does not start with a valid calendar date
    """
    if not value:
        raise ValueError("Missing OFX date")

    digits = value.strip()[:14]
    if len(digits) < 8 or not digits[:8].isdigit():
        raise ValueError(f"Invalid OFX date: {value}")

    time_part = digits[8:]
    if time_part and not time_part.isdigit():
        time_part = ""

    return datetime(
        int(digits[0:4]),
        int(digits[4:6]),
        int(digits[6:8]),
        int(time_part[0:2] or 0),
        int(time_part[2:4] or 0),
        int(time_part[4:6] or 0),
    )


def parse_ofx_amount(value: str | None) -> Decimal:
    """Parse a TRNAMT value. Some banks write a decimal comma."""
    if value is None or not value.strip():
        raise ValueError("Missing amount")

    text = value.strip().replace(",", ".")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value}")

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value}")
    return amount


def parse_headers(preamble: str) -> dict[str, str]:
    """Parse the header block in front of the <OFX> root.

    OFX 1.x writes ``KEY:VALUE`` lines, OFX 2.x writes attributes inside
    ``<?xml ...?>`` and ``<?OFX ...?>`` declarations.
    """
    headers: dict[str, str] = {}

    for declaration in DECLARATION_PATTERN.findall(preamble):
        for key, value in ATTRIBUTE_PATTERN.findall(declaration):
            headers[key.upper()] = value

    for line in DECLARATION_PATTERN.sub("", preamble).split("\n"):
        key, sep, value = line.partition(":")
        if sep and key.strip():
            headers[key.strip().upper()] = value.strip()

    return headers


def _add_value(node: dict, tag: str, value) -> None:
    if tag not in node:
        node[tag] = value
    elif isinstance(node[tag], list):
        node[tag].append(value)
    else:
        node[tag] = [node[tag], value]


def build_tree(body: str) -> dict:
    """Turn an OFX body into nested dictionaries.

    Repeated tags become lists. Closing tags that do not match any open
    aggregate are ignored.
    """
    tokens = [
        (closing == "/", tag.upper(), text.strip())
        for closing, tag, text in TAG_PATTERN.findall(body)
    ]

    root: dict = {}
    stack: list[tuple[str | None, dict]] = [(None, root)]
    i = 0

    while i < len(tokens):
        closing, tag, text = tokens[i]
        next_token = tokens[i + 1] if i + 1 < len(tokens) else None
        closes_next = next_token is not None and next_token[0] and next_token[1] == tag

        if closing:
            open_tags = [name for name, _ in stack]
            if tag in open_tags:
                while stack[-1][0] != tag:
                    stack.pop()
                stack.pop()
        elif text or closes_next:
            _add_value(stack[-1][1], tag, html.unescape(text))
            if closes_next:
                i += 1
        else:
            child: dict = {}
            _add_value(stack[-1][1], tag, child)
            stack.append((tag, child))

        i += 1

    return root


def _first(node):
    if isinstance(node, list):
        return node[0] if node else None
    return node


def _as_list(node) -> list:
    if node is None:
        return []
    return node if isinstance(node, list) else [node]


def _require(parent: dict, *names: str) -> dict:
    for name in names:
        value = _first(parent.get(name))
        if isinstance(value, dict):
            return value
    raise StructuralParseError(f"OFX statement is missing {' / '.join(names)}")


def _leaf_values(node: dict) -> dict[str, str]:
    return {key: value for key, value in node.items() if isinstance(value, str)}


def _optional_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parse_ofx_date(value)
    except ValueError:
        logger.warning(f"Ignoring invalid statement date: {value}")
        return None


def parse_ofx(content: str) -> OfxStatement:
    """Parse OFX content into an OfxStatement.

    Args:
        content: Raw OFX text (SGML or XML)

    Returns:
        OfxStatement with one raw record per STMTTRN

    Raises:
        InvalidInputError: Empty content or no <OFX> root
        StructuralParseError: A required statement block is missing
        NoTransactionsError: No BANKTRANLIST or no STMTTRN in it
    """
    if not content or not content.strip():
        raise InvalidInputError("OFX content is empty")

    content = preprocess_content(content)
    root_match = OFX_ROOT_PATTERN.search(content)
    if not root_match:
        raise InvalidInputError("Content does not look like an OFX statement")

    headers = parse_headers(content[:root_match.start()])
    body = DECLARATION_PATTERN.sub("", content[root_match.start():])
    ofx = _first(build_tree(body).get("OFX"))
    if not isinstance(ofx, dict) or not ofx:
        raise InvalidInputError("OFX root element is empty")

    messages = _require(ofx, "BANKMSGSRSV1", "CREDITCARDMSGSRSV1")
    transaction_response = _require(messages, "STMTTRNRS", "CCSTMTTRNRS")
    statement_response = _require(transaction_response, "STMTRS", "CCSTMTRS")
    account_node = _require(statement_response, "BANKACCTFROM", "CCACCTFROM")

    is_card = "CCACCTFROM" in statement_response and "BANKACCTFROM" not in statement_response
    account = OfxAccount(
        account_id=account_node.get("ACCTID", ""),
        bank_id=account_node.get("BANKID", ""),
        branch_id=account_node.get("BRANCHID"),
        account_type=account_node.get("ACCTTYPE") or ("CREDITLINE" if is_card else "CHECKING"),
    )

    transaction_list = _first(statement_response.get("BANKTRANLIST"))
    if not isinstance(transaction_list, dict):
        raise NoTransactionsError("OFX statement has no transaction list")

    transactions = [
        _leaf_values(node)
        for node in _as_list(transaction_list.get("STMTTRN"))
        if isinstance(node, dict)
    ]
    if not transactions:
        raise NoTransactionsError("OFX transaction list is empty")

    ledger_balance = None
    balance_node = _first(statement_response.get("LEDGERBAL"))
    if isinstance(balance_node, dict) and balance_node.get("BALAMT"):
        try:
            ledger_balance = parse_ofx_amount(balance_node["BALAMT"])
        except ValueError:
            logger.warning(f"Ignoring invalid ledger balance: {balance_node['BALAMT']}")

    statement = OfxStatement(
        account=account,
        transactions=transactions,
        currency=statement_response.get("CURDEF") or DEFAULT_CURRENCY,
        start_date=_optional_date(transaction_list.get("DTSTART")),
        end_date=_optional_date(transaction_list.get("DTEND")),
        ledger_balance=ledger_balance,
        headers=headers,
    )

    logger.info(
        f"Parsed OFX statement for account {account.account_id}: "
        f"{statement.transaction_count} transactions"
    )
    return statement
