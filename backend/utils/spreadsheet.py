# backend/utils/spreadsheet.py
import uuid
from pathlib import Path
from typing import Sequence

import pandas as pd
from openpyxl.utils import get_column_letter

from config import settings
from models.stock_card import StockCard
from utils.ledger import LedgerEntry
from utils.pdf import format_qty

SHEET_NAME = "Stock Card"
STORAGE_DIR = Path(settings.EXPORT_DIR)

LEDGER_COLUMNS = [
    "Date",
    "Reference",
    "Receipt Qty.",
    "Issue Qty.",
    "Office",
    "Balance Qty.",
    "No. of Days to Consume",
]
COLUMN_WIDTHS = [12, 15, 12, 12, 20, 12, 20]


def get_xlsx_path(card: StockCard) -> Path:
    STORAGE_DIR.mkdir(parents=True, exist_ok=True)
    # One file per export, removed once the response is sent
    return STORAGE_DIR / f"stock-card-{card.id}-{uuid.uuid4().hex}.xlsx"


def header_rows(card: StockCard) -> list:
    """Rows written above the ledger table, one list per sheet row."""
    return [
        ["STOCK CARD"],
        [""],
        [f"Entity Name: {card.entity_name or ''}", f"Fund Cluster: {card.fund_cluster or ''}"],
        [""],
        [f"Item: {card.item_name}", f"Stock No.: {card.stock_no or ''}"],
        [f"Description: {card.description or ''}", f"Re-order Point: {format_qty(card.reorder_point)}"],
        [f"Unit of Measurement: {card.unit_of_measurement or ''}"],
        [""],
    ]


def ledger_frame(entries: Sequence[LedgerEntry]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            [
                e.date.isoformat(),
                e.reference,
                e.receipt_qty,
                e.issue_qty,
                e.issue_office,
                e.balance_qty,
                e.days_to_consume,
            ]
            for e in entries
        ],
        columns=LEDGER_COLUMNS,
    )


def generate_stock_card_xlsx(card: StockCard, entries: Sequence[LedgerEntry], out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    header = header_rows(card)
    df = ledger_frame(entries)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        # Ledger table goes right below the header block
        df.to_excel(writer, sheet_name=SHEET_NAME, startrow=len(header), index=False)
        ws = writer.sheets[SHEET_NAME]

        for row_idx, row in enumerate(header, start=1):
            for col_idx, value in enumerate(row, start=1):
                if value:
                    ws.cell(row=row_idx, column=col_idx, value=value)

        for col_idx, width in enumerate(COLUMN_WIDTHS, start=1):
            ws.column_dimensions[get_column_letter(col_idx)].width = width
