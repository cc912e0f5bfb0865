# backend/utils/persistence.py
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.stock_card import StockCard, StockCardTransaction
from utils import ledger
from utils.ledger import LedgerEntry, LedgerResult

logger = logging.getLogger(__name__)

HEADER_FIELDS = (
    "entity_name",
    "fund_cluster",
    "item_name",
    "stock_no",
    "description",
    "unit_of_measurement",
    "reorder_point",
)


class PersistenceError(Exception):
    """Storage failure surfaced to the API as a distinguishable error."""


class RecordNotFound(PersistenceError, LookupError):
    pass


class InvalidStockCard(ValueError):
    pass


def _require_item_name(data: Mapping[str, Any]) -> None:
    if not (data.get("item_name") or "").strip():
        raise InvalidStockCard("Item name is required")


def transaction_to_entry(tx: StockCardTransaction) -> LedgerEntry:
    return LedgerEntry(
        id=tx.id,
        date=tx.date,
        receipt_qty=tx.receipt_qty,
        issue_qty=tx.issue_qty,
        seq=tx.seq,
        reference=tx.reference or "",
        issue_office=tx.issue_office or "",
        days_to_consume=tx.days_to_consume or 0,
        balance_qty=tx.balance_qty,
    )


class StockCardRepository:
    """
    Stock cards and their ledgers on top of a SQLAlchemy session.

    Every change to a card's transaction set goes through one cycle: lock the
    card, read its full transaction set, run the ledger engine, write the
    balances back and commit. Any failure rolls the session back.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- helpers ---

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Commit failed: %s", e)
            raise PersistenceError("Could not save changes") from e

    def _query(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Query failed: %s", e)
            raise PersistenceError("Could not read from the database") from e

    def _locked_card(self, card_id: str) -> StockCard:
        # Serialises writers on the same card (no-op on SQLite)
        card = self._query(
            lambda: self.db.query(StockCard)
            .filter(StockCard.id == card_id)
            .with_for_update()
            .first()
        )
        if not card:
            raise RecordNotFound(f"Stock card {card_id} not found")
        return card

    def _apply_balances(self, rows: Iterable[StockCardTransaction], result: LedgerResult) -> None:
        by_id = {row.id: row for row in rows}
        for entry in result.entries:
            row = by_id.get(entry.id)
            if row is not None and row.balance_qty != entry.balance_qty:
                row.balance_qty = entry.balance_qty

    def _new_row(self, card_id: str, entry: LedgerEntry, month: Optional[int] = None,
                 year: Optional[int] = None) -> StockCardTransaction:
        return StockCardTransaction(
            id=entry.id,
            stock_card_id=card_id,
            date=entry.date,
            month=month or entry.date.month,
            year=year or entry.date.year,
            reference=entry.reference or None,
            receipt_qty=entry.receipt_qty,
            issue_qty=entry.issue_qty,
            issue_office=entry.issue_office or None,
            balance_qty=entry.balance_qty,
            days_to_consume=entry.days_to_consume,
            seq=entry.seq,
        )

    # --- stock cards ---

    def list_cards(self, q: Optional[str] = None, page: int = 1, page_size: int = 10) -> Tuple[List[StockCard], int]:
        query = self.db.query(StockCard)

        # Search by item, stock number, description or entity
        if q:
            like = f"%{q}%"
            query = query.filter(
                StockCard.item_name.ilike(like)
                | StockCard.stock_no.ilike(like)
                | StockCard.description.ilike(like)
                | StockCard.entity_name.ilike(like)
            )

        total = self._query(query.count)
        cards = self._query(
            query.order_by(StockCard.item_name.asc(), StockCard.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all
        )
        return cards, total

    def get_card(self, card_id: str) -> StockCard:
        card = self._query(self.db.query(StockCard).filter(StockCard.id == card_id).first)
        if not card:
            raise RecordNotFound(f"Stock card {card_id} not found")
        return card

    def create_card(self, data: Mapping[str, Any], transactions: Iterable[Mapping[str, Any]] = ()) -> StockCard:
        _require_item_name(data)
        header = {k: data.get(k) for k in HEADER_FIELDS}
        header["item_name"] = header["item_name"].strip()

        # Validate and balance the initial ledger before anything is written
        result = ledger.recompute([])
        labels: Dict[str, Tuple[Optional[int], Optional[int]]] = {}
        for tx in transactions:
            result = ledger.add_transaction(result.entries, tx)
            newest = max(result.entries, key=lambda e: e.seq)
            labels[newest.id] = (tx.get("month"), tx.get("year"))

        card = StockCard(**header)
        self.db.add(card)
        try:
            self.db.flush()
            for entry in result.entries:
                month, year = labels.get(entry.id, (None, None))
                self.db.add(self._new_row(card.id, entry, month, year))
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Could not create stock card") from e
        self._commit()
        self.db.refresh(card)
        logger.info("Created stock card %s (%s) with %d transactions", card.id, card.item_name, len(result.entries))
        return card

    def update_card(self, card_id: str, data: Mapping[str, Any]) -> StockCard:
        card = self._locked_card(card_id)
        changes = {k: v for k, v in data.items() if k in HEADER_FIELDS}
        if "item_name" in changes:
            _require_item_name(changes)
            changes["item_name"] = changes["item_name"].strip()

        for key, value in changes.items():
            setattr(card, key, value)
        self._commit()
        self.db.refresh(card)
        return card

    def delete_card(self, card_id: str) -> None:
        card = self._locked_card(card_id)
        # Explicit bulk delete so the cascade does not depend on FK support
        removed = self._delete_transactions(card_id)
        self.db.delete(card)
        self._commit()
        logger.info("Deleted stock card %s and %d transactions", card_id, removed)

    # --- transactions ---

    def list_transactions(self, card_id: str) -> List[StockCardTransaction]:
        self.get_card(card_id)
        return self._query(
            self.db.query(StockCardTransaction)
            .filter(StockCardTransaction.stock_card_id == card_id)
            .order_by(StockCardTransaction.date.asc(), StockCardTransaction.seq.asc())
            .all
        )

    def _delete_transactions(self, card_id: str) -> int:
        try:
            return (
                self.db.query(StockCardTransaction)
                .filter(StockCardTransaction.stock_card_id == card_id)
                .delete(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Could not delete transactions") from e

    def delete_transactions(self, card_id: str) -> int:
        self._locked_card(card_id)
        removed = self._delete_transactions(card_id)
        self._commit()
        return removed

    def ledger(self, card_id: str) -> LedgerResult:
        rows = self.list_transactions(card_id)
        return ledger.recompute(transaction_to_entry(r) for r in rows)

    def add_transaction(self, card_id: str, data: Mapping[str, Any]) -> Tuple[LedgerResult, str]:
        """Append a ledger line and rebalance the card. Returns the ledger and the new id."""
        self._locked_card(card_id)
        rows = self.list_transactions(card_id)

        try:
            payload = dict(data)
            payload.pop("id", None)
            payload.pop("seq", None)
            existing = [transaction_to_entry(r) for r in rows]
            result = ledger.add_transaction(existing, payload)
        except ledger.LedgerError:
            self.db.rollback()
            raise

        known = {r.id for r in rows}
        new_entry = next(e for e in result.entries if e.id not in known)

        self._apply_balances(rows, result)
        self.db.add(self._new_row(card_id, new_entry, data.get("month"), data.get("year")))
        self._commit()
        logger.info("Added transaction %s to card %s, balance now %s", new_entry.id, card_id, result.current_balance)
        return result, new_entry.id

    def remove_transaction(self, card_id: str, transaction_id: str) -> LedgerResult:
        self._locked_card(card_id)
        rows = self.list_transactions(card_id)

        try:
            result = ledger.remove_transaction([transaction_to_entry(r) for r in rows], transaction_id)
        except ledger.LedgerError:
            self.db.rollback()
            raise

        target = next(r for r in rows if r.id == transaction_id)
        self.db.delete(target)
        self._apply_balances(rows, result)
        self._commit()
        logger.info("Removed transaction %s from card %s, balance now %s", transaction_id, card_id, result.current_balance)
        return result

    # --- presentation helpers ---

    def last_updated(self, card: StockCard) -> date:
        latest = self._query(
            self.db.query(func.max(StockCardTransaction.date))
            .filter(StockCardTransaction.stock_card_id == card.id)
            .scalar
        )
        if latest:
            return latest
        return card.created_at.date() if card.created_at else date.today()
