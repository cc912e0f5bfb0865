# backend/routes/exports.py
import calendar
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from database import get_db
from utils.audit import write_log
from utils.ledger import filter_by_period
from utils.pdf import export_filename, generate_stock_card_pdf, get_pdf_path
from utils.persistence import StockCardRepository
from utils.spreadsheet import generate_stock_card_xlsx, get_xlsx_path

router = APIRouter(prefix="/stock-cards", tags=["Exports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _period_label(month: Optional[int], year: Optional[int]) -> Optional[str]:
    if month and year:
        return f"{calendar.month_name[month]} {year}"
    if month:
        return calendar.month_name[month]
    if year:
        return str(year)
    return None


def _load(db: Session, card_id: str, month: Optional[int], year: Optional[int]):
    repo = StockCardRepository(db)
    card = repo.get_card(card_id)
    # Balances come from the full ledger even when only one period is exported
    result = repo.ledger(card_id)
    return card, filter_by_period(result.entries, month=month, year=year)


def _render_pdf(card, entries, month, year, background_tasks: BackgroundTasks):
    pdf_path = get_pdf_path(card)
    # Each request gets its own file, deleted after it has been streamed
    background_tasks.add_task(pdf_path.unlink, missing_ok=True)
    try:
        generate_stock_card_pdf(card, entries, pdf_path, period_label=_period_label(month, year))
    except OSError as e:
        pdf_path.unlink(missing_ok=True)
        raise HTTPException(status_code=500, detail=f"Could not generate PDF: {e}")
    return pdf_path


@router.get("/{card_id}/export/pdf")
def download_stock_card_pdf(
    card_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    card, entries = _load(db, card_id, month, year)
    pdf_path = _render_pdf(card, entries, month, year, background_tasks)

    write_log(db, action="STOCK_CARD_EXPORT", resource="stock_cards", ip=request.client.host if request.client else None,
              meta={"id": card_id, "format": "pdf"})
    return FileResponse(path=str(pdf_path), media_type="application/pdf", filename=export_filename(card, "pdf"))


@router.get("/{card_id}/print")
def print_stock_card(
    card_id: str,
    background_tasks: BackgroundTasks,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    # Same document as the download, opened in the browser's print view
    card, entries = _load(db, card_id, month, year)
    pdf_path = _render_pdf(card, entries, month, year, background_tasks)
    return FileResponse(
        path=str(pdf_path),
        media_type="application/pdf",
        filename=export_filename(card, "pdf"),
        content_disposition_type="inline",
    )


@router.get("/{card_id}/export/xlsx")
def download_stock_card_xlsx(
    card_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    card, entries = _load(db, card_id, month, year)
    xlsx_path = get_xlsx_path(card)
    background_tasks.add_task(xlsx_path.unlink, missing_ok=True)
    try:
        generate_stock_card_xlsx(card, entries, xlsx_path)
    except OSError as e:
        xlsx_path.unlink(missing_ok=True)
        raise HTTPException(status_code=500, detail=f"Could not generate spreadsheet: {e}")

    write_log(db, action="STOCK_CARD_EXPORT", resource="stock_cards", ip=request.client.host if request.client else None,
              meta={"id": card_id, "format": "xlsx"})
    return FileResponse(path=str(xlsx_path), media_type=XLSX_MEDIA_TYPE, filename=export_filename(card, "xlsx"))
