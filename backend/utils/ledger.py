# backend/utils/ledger.py
"""
Ledger balance engine for stock cards.

A card's balance column is never updated incrementally. Every structural
change to the transaction set (add, remove, reorder) re-runs ``recompute``
over the whole set, so an entry dated before existing ones shifts every
later balance correctly.
"""
import numbers
import uuid
from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

Quantity = Union[int, float]


class LedgerError(Exception):
    """Base class for ledger engine errors."""


class InvalidQuantity(LedgerError, ValueError):
    pass


class InvalidDate(LedgerError, ValueError):
    pass


class TransactionNotFound(LedgerError, LookupError):
    pass


@dataclass(frozen=True)
class LedgerEntry:
    date: date
    receipt_qty: Quantity = 0
    issue_qty: Quantity = 0
    id: Optional[str] = None
    # Insertion order within the card; ties on date are broken by it
    seq: Optional[int] = None
    reference: str = ""
    issue_office: str = ""
    days_to_consume: Quantity = 0
    balance_qty: Optional[Quantity] = None


@dataclass(frozen=True)
class LedgerResult:
    entries: Tuple[LedgerEntry, ...]
    current_balance: Quantity

    @property
    def balances(self) -> List[Quantity]:
        return [e.balance_qty for e in self.entries]


# Keys sent by the web form use camelCase
_KEY_ALIASES = {
    "receiptQty": "receipt_qty",
    "issueQty": "issue_qty",
    "issueOffice": "issue_office",
    "balanceQty": "balance_qty",
    "daysToConsume": "days_to_consume",
    "receipt": "receipt_qty",
    "issue": "issue_qty",
}
_ENTRY_FIELDS = {f.name for f in fields(LedgerEntry)}


def _as_decimal(qty: Quantity) -> Decimal:
    # Floats go through their shortest repr so 0.1 stays 0.1
    return Decimal(qty) if isinstance(qty, int) else Decimal(repr(qty))


def _from_decimal(dec: Decimal) -> Quantity:
    return int(dec) if dec == dec.to_integral_value() else float(dec)


def parse_quantity(value: Any, field_name: str = "quantity") -> Quantity:
    """Validate a non-negative, finite number. Integral values come back as int."""
    if value is None or isinstance(value, bool):
        raise InvalidQuantity(f"{field_name} must be a number, got {value!r}")

    if isinstance(value, numbers.Integral):
        qty: Quantity = int(value)
    elif isinstance(value, (numbers.Real, Decimal, str)):
        try:
            if isinstance(value, str):
                dec = Decimal(value.strip())
            elif isinstance(value, Decimal):
                dec = value
            else:
                dec = Decimal(repr(float(value)))
        except (InvalidOperation, ValueError):
            raise InvalidQuantity(f"{field_name} must be a number, got {value!r}")
        if not dec.is_finite():
            raise InvalidQuantity(f"{field_name} must be finite, got {value!r}")
        qty = _from_decimal(dec)
    else:
        raise InvalidQuantity(f"{field_name} must be a number, got {type(value).__name__}")

    if qty < 0:
        raise InvalidQuantity(f"{field_name} cannot be negative, got {value!r}")
    return qty


def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), "%Y-%m-%d").date()
        except ValueError:
            raise InvalidDate(f"Expected a YYYY-MM-DD date, got {value!r}")
    raise InvalidDate(f"Expected a calendar date, got {type(value).__name__}")


def to_entry(item: Union[LedgerEntry, Mapping[str, Any]]) -> LedgerEntry:
    """Build a validated LedgerEntry from an entry or a plain record."""
    if isinstance(item, LedgerEntry):
        raw = {f: getattr(item, f) for f in _ENTRY_FIELDS}
    elif isinstance(item, Mapping):
        raw = {}
        for key, value in item.items():
            key = _KEY_ALIASES.get(key, key)
            if key in _ENTRY_FIELDS:
                raw[key] = value
        if "date" not in raw:
            raise InvalidDate("Transaction has no date")
    else:
        raise TypeError(f"Cannot build a ledger entry from {type(item).__name__}")

    raw["date"] = parse_date(raw["date"])
    raw["receipt_qty"] = parse_quantity(raw.get("receipt_qty", 0), "receipt_qty")
    raw["issue_qty"] = parse_quantity(raw.get("issue_qty", 0), "issue_qty")
    if raw.get("days_to_consume") is not None:
        raw["days_to_consume"] = parse_quantity(raw["days_to_consume"], "days_to_consume")
    else:
        raw["days_to_consume"] = 0
    raw["reference"] = raw.get("reference") or ""
    raw["issue_office"] = raw.get("issue_office") or ""
    return LedgerEntry(**raw)


def _ledger_order(entries: Sequence[LedgerEntry]) -> List[LedgerEntry]:
    # Entries without a seq fall back to their position in the input
    keyed = [
        ((e.date, e.seq if e.seq is not None else pos), e)
        for pos, e in enumerate(entries)
    ]
    keyed.sort(key=lambda pair: pair[0])
    return [e for _, e in keyed]


def recompute(transactions: Iterable[Union[LedgerEntry, Mapping[str, Any]]]) -> LedgerResult:
    """
    Sort a card's transactions by date (ties keep insertion order) and fold the
    running balance from 0. Every entry is validated before any balance is
    computed, so a bad entry raises without producing a partial result.
    Negative balances are allowed. The running total is kept in Decimal and
    each balance is converted once, so fractional quantities do not drift.
    """
    entries = [to_entry(t) for t in transactions]

    balance = Decimal(0)
    out = []
    for entry in _ledger_order(entries):
        balance += _as_decimal(entry.receipt_qty) - _as_decimal(entry.issue_qty)
        out.append(replace(entry, balance_qty=_from_decimal(balance)))

    return LedgerResult(entries=tuple(out), current_balance=_from_decimal(balance))


def add_transaction(existing: Iterable[Union[LedgerEntry, Mapping[str, Any]]],
                    new: Union[LedgerEntry, Mapping[str, Any]]) -> LedgerResult:
    entries = [to_entry(e) for e in existing]
    new_entry = to_entry(new)

    if new_entry.id is None:
        new_entry = replace(new_entry, id=uuid.uuid4().hex)
    if new_entry.seq is None:
        last_seq = max(
            (e.seq if e.seq is not None else pos for pos, e in enumerate(entries)),
            default=-1,
        )
        new_entry = replace(new_entry, seq=last_seq + 1)

    return recompute(entries + [new_entry])


def remove_transaction(existing: Iterable[Union[LedgerEntry, Mapping[str, Any]]],
                       transaction_id: str) -> LedgerResult:
    entries = [to_entry(e) for e in existing]
    remaining = [e for e in entries if e.id != transaction_id]
    if len(remaining) == len(entries):
        raise TransactionNotFound(f"Transaction {transaction_id} not found")
    return recompute(remaining)


def filter_by_period(entries: Iterable[LedgerEntry],
                     month: Optional[int] = None,
                     year: Optional[int] = None) -> List[LedgerEntry]:
    """Month/year view of an already recomputed ledger. Balances are left as is."""
    if month is not None and not 1 <= month <= 12:
        raise InvalidDate(f"Month must be between 1 and 12, got {month}")
    return [
        e for e in entries
        if (month is None or e.date.month == month)
        and (year is None or e.date.year == year)
    ]


def available_years(entries: Iterable[LedgerEntry]) -> List[int]:
    return sorted({e.date.year for e in entries}, reverse=True)
