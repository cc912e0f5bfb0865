# backend/routes/stock_cards.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from database import get_db
from models.stock_card import StockCard
from utils.audit import write_log
from utils.ledger import LedgerEntry, LedgerResult, available_years, filter_by_period
from utils.persistence import StockCardRepository
import schemas.stock_card as card_schemas

router = APIRouter(prefix="/stock-cards", tags=["Stock Cards"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def entry_to_dict(e: LedgerEntry) -> dict:
    return {
        "id": e.id,
        "date": e.date,
        "month": e.date.month,
        "year": e.date.year,
        "reference": e.reference or None,
        "receipt_qty": e.receipt_qty,
        "issue_qty": e.issue_qty,
        "issue_office": e.issue_office or None,
        "balance_qty": e.balance_qty,
        "days_to_consume": e.days_to_consume,
        "seq": e.seq,
    }


def _ledger_response(card_id: str, result: LedgerResult) -> dict:
    return {
        "stock_card_id": card_id,
        "current_balance": result.current_balance,
        "transactions": [entry_to_dict(e) for e in result.entries],
    }


def card_summary(repo: StockCardRepository, card: StockCard, result: LedgerResult) -> dict:
    below = card.reorder_point is not None and result.current_balance <= card.reorder_point
    return {
        "id": card.id,
        "entity_name": card.entity_name,
        "fund_cluster": card.fund_cluster,
        "item_name": card.item_name,
        "stock_no": card.stock_no,
        "description": card.description,
        "unit_of_measurement": card.unit_of_measurement,
        "reorder_point": card.reorder_point,
        "current_balance": result.current_balance,
        "last_updated": repo.last_updated(card),
        "below_reorder_point": below,
    }


@router.get("", response_model=card_schemas.StockCardPage)
def list_stock_cards(
    q: Optional[str] = Query(None, description="Search by item, stock no., description or entity"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    repo = StockCardRepository(db)
    cards, total = repo.list_cards(q=q, page=page, page_size=page_size)
    items = [card_summary(repo, card, repo.ledger(card.id)) for card in cards]
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.post("", response_model=card_schemas.StockCardDetail, status_code=201)
def create_stock_card(
    payload: card_schemas.StockCardCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    repo = StockCardRepository(db)
    data = payload.model_dump(exclude={"transactions"})
    transactions = [tx.model_dump() for tx in payload.transactions]
    card = repo.create_card(data, transactions)

    write_log(db, action="STOCK_CARD_CREATE", resource="stock_cards", ip=_client_ip(request),
              meta={"id": card.id, "transactions": len(transactions)})
    return _card_detail(repo, card)


def _card_detail(repo: StockCardRepository, card: StockCard,
                 month: Optional[int] = None, year: Optional[int] = None) -> dict:
    result = repo.ledger(card.id)
    visible = filter_by_period(result.entries, month=month, year=year)
    detail = card_summary(repo, card, result)
    detail.update({
        "created_at": card.created_at,
        "updated_at": card.updated_at,
        "years": available_years(result.entries),
        "month": month,
        "year": year,
        "transactions": [entry_to_dict(e) for e in visible],
    })
    return detail


@router.get("/{card_id}", response_model=card_schemas.StockCardDetail)
def get_stock_card(
    card_id: str,
    month: Optional[int] = Query(None, ge=1, le=12, description="Show only this month (1-12)"),
    year: Optional[int] = Query(None, ge=1, description="Show only this year"),
    db: Session = Depends(get_db),
):
    repo = StockCardRepository(db)
    card = repo.get_card(card_id)
    return _card_detail(repo, card, month=month, year=year)


@router.patch("/{card_id}", response_model=card_schemas.StockCardDetail)
def update_stock_card(
    card_id: str,
    payload: card_schemas.StockCardUpdate,
    request: Request,
    db: Session = Depends(get_db),
):
    repo = StockCardRepository(db)
    changes = payload.model_dump(exclude_unset=True)
    card = repo.update_card(card_id, changes)

    write_log(db, action="STOCK_CARD_UPDATE", resource="stock_cards", ip=_client_ip(request),
              meta={"id": card.id, "fields": sorted(changes)})
    return _card_detail(repo, card)


@router.delete("/{card_id}", status_code=204)
def delete_stock_card(
    card_id: str,
    request: Request,
    db: Session = Depends(get_db),
):
    repo = StockCardRepository(db)
    repo.delete_card(card_id)
    write_log(db, action="STOCK_CARD_DELETE", resource="stock_cards", ip=_client_ip(request),
              meta={"id": card_id})
    return Response(status_code=204)


# --- Ledger ---

@router.get("/{card_id}/transactions", response_model=card_schemas.LedgerResponse)
def get_ledger(card_id: str, db: Session = Depends(get_db)):
    repo = StockCardRepository(db)
    return _ledger_response(card_id, repo.ledger(card_id))


@router.post("/{card_id}/transactions", response_model=card_schemas.LedgerResponse, status_code=201)
def add_transaction(
    card_id: str,
    payload: card_schemas.TransactionCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    repo = StockCardRepository(db)
    result, tx_id = repo.add_transaction(card_id, payload.model_dump())

    write_log(db, action="TRANSACTION_ADD", resource="stock_card_transactions", ip=_client_ip(request),
              meta={"stock_card_id": card_id, "id": tx_id, "balance": result.current_balance})
    return _ledger_response(card_id, result)


@router.delete("/{card_id}/transactions/{transaction_id}", response_model=card_schemas.LedgerResponse)
def remove_transaction(
    card_id: str,
    transaction_id: str,
    request: Request,
    db: Session = Depends(get_db),
):
    repo = StockCardRepository(db)
    result = repo.remove_transaction(card_id, transaction_id)

    write_log(db, action="TRANSACTION_REMOVE", resource="stock_card_transactions", ip=_client_ip(request),
              meta={"stock_card_id": card_id, "id": transaction_id, "balance": result.current_balance})
    return _ledger_response(card_id, result)
