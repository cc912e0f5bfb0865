# backend/utils/pdf.py
import logging
import re
import uuid
from pathlib import Path
from typing import Optional, Sequence

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from config import settings
from models.stock_card import StockCard
from utils.ledger import LedgerEntry

logger = logging.getLogger(__name__)

# Path configuration
STORAGE_DIR = Path(settings.EXPORT_DIR)
FONT_DIR = Path(__file__).resolve().parent.parent / "assets" / "fonts"
FONT_REGULAR_PATH = FONT_DIR / "DejaVuSans.ttf"
FONT_BOLD_PATH = FONT_DIR / "DejaVuSans-Bold.ttf"

# Built-in Type1 fonts unless DejaVu is shipped in assets/fonts
FONT_REGULAR_NAME = "Helvetica"
FONT_BOLD_NAME = "Helvetica-Bold"

# The paper form always shows at least this many ledger rows
MIN_LEDGER_ROWS = 10

def ensure_storage_dir() -> None:
    STORAGE_DIR.mkdir(parents=True, exist_ok=True)

def _safe_name(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "-", value).strip("-") or "item"

def export_filename(card: StockCard, extension: str) -> str:
    """Download name offered to the browser, e.g. stock-card-Bond-Paper.pdf"""
    return f"stock-card-{_safe_name(card.item_name)}.{extension}"

def get_pdf_path(card: StockCard) -> Path:
    """Returns a fresh output path for one PDF export of a stock card."""
    ensure_storage_dir()
    return STORAGE_DIR / f"stock-card-{card.id}-{uuid.uuid4().hex}.pdf"

def format_qty(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)

_fonts_inited = False
def _init_fonts():
    """Registers DejaVu fonts (full Unicode) when they are available."""
    global _fonts_inited, FONT_REGULAR_NAME, FONT_BOLD_NAME
    if _fonts_inited:
        return
    _fonts_inited = True

    if not FONT_REGULAR_PATH.exists():
        logger.debug("Font file not found at %s, using Helvetica", FONT_REGULAR_PATH)
        return

    pdfmetrics.registerFont(TTFont("DejaVuSans", str(FONT_REGULAR_PATH)))
    FONT_REGULAR_NAME = "DejaVuSans"
    if FONT_BOLD_PATH.exists():
        pdfmetrics.registerFont(TTFont("DejaVuSans-Bold", str(FONT_BOLD_PATH)))
        FONT_BOLD_NAME = "DejaVuSans-Bold"
    else:
        FONT_BOLD_NAME = FONT_REGULAR_NAME

def generate_stock_card_pdf(card: StockCard, entries: Sequence[LedgerEntry], out_path: Path,
                            period_label: Optional[str] = None) -> None:
    """
    Renders the Appendix 58 stock card:
    - "Appendix 58" marker and title
    - Entity Name / Fund Cluster line
    - Item block (item, stock no., description, re-order point, unit)
    - Ledger table with Receipt / Issue / Balance column groups
    Balances are printed exactly as the ledger engine computed them.
    """
    _init_fonts()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    c = canvas.Canvas(str(out_path), pagesize=A4)
    width, height = A4
    left, right = 15 * mm, width - 15 * mm

    # Helper for drawing text
    def draw_text(x, y, text, font=None, size=10, align="left"):
        c.setFont(font or FONT_REGULAR_NAME, size)
        text_str = str(text) if text is not None else ""
        if align == "right":
            c.drawRightString(x, y, text_str)
        elif align == "center":
            c.drawCentredString(x, y, text_str)
        else:
            c.drawString(x, y, text_str)

    def labelled(x, y, label, value, size=9):
        draw_text(x, y, label, font=FONT_BOLD_NAME, size=size)
        draw_text(x + pdfmetrics.stringWidth(label, FONT_BOLD_NAME, size) + 2 * mm, y, value or "", size=size)

    # --- 1. HEADER ---
    y = height - 15 * mm
    draw_text(right, y, "Appendix 58", size=9, align="right", font=FONT_REGULAR_NAME)
    y -= 15 * mm
    draw_text(width / 2, y, "STOCK CARD", font=FONT_BOLD_NAME, size=16, align="center")
    if period_label:
        y -= 6 * mm
        draw_text(width / 2, y, period_label, size=9, align="center")
    y -= 12 * mm

    labelled(left, y, "Entity Name:", card.entity_name)
    labelled(width / 2 + 10 * mm, y, "Fund Cluster:", card.fund_cluster)
    y -= 6 * mm

    # --- 2. ITEM BLOCK (bordered, two columns) ---
    row_h = 7 * mm
    mid = width / 2
    c.setLineWidth(0.6)
    block = [
        (("Item :", card.item_name), ("Stock No. :", card.stock_no)),
        (("Description :", card.description), ("Re-order Point :", format_qty(card.reorder_point))),
        (("Unit of Measurement :", card.unit_of_measurement), None),
    ]
    for left_cell, right_cell in block:
        top = y
        c.rect(left, top - row_h, right - left, row_h, stroke=1, fill=0)
        labelled(left + 2 * mm, top - row_h + 2.3 * mm, *left_cell)
        if right_cell:
            c.line(mid, top, mid, top - row_h)
            labelled(mid + 2 * mm, top - row_h + 2.3 * mm, *right_cell)
        y -= row_h

    # --- 3. LEDGER TABLE ---
    # Column x-boundaries: Date, Reference, Receipt Qty, Issue Qty, Office, Balance Qty, Days
    widths_mm = [22, 34, 20, 20, 36, 20, 28]
    xs = [left]
    for w in widths_mm:
        xs.append(xs[-1] + w * mm)

    def draw_table_header(top):
        h1, h2 = 7 * mm, 6 * mm
        c.setFillColorRGB(0.95, 0.95, 0.95)
        c.rect(left, top - h1 - h2, xs[-1] - left, h1 + h2, fill=1, stroke=0)
        c.setFillColorRGB(0, 0, 0)
        c.rect(left, top - h1 - h2, xs[-1] - left, h1 + h2, fill=0, stroke=1)

        # Row-spanning headers
        for i, label in ((0, "Date"), (1, "Reference"), (6, "No. of Days")):
            draw_text((xs[i] + xs[i + 1]) / 2, top - h1 - 1 * mm, label, font=FONT_BOLD_NAME, size=8, align="center")
        draw_text((xs[6] + xs[7]) / 2, top - h1 - 4.5 * mm, "to Consume", font=FONT_BOLD_NAME, size=8, align="center")

        # Grouped headers
        c.line(xs[2], top - h1, xs[6], top - h1)
        groups = ((2, 3, "Receipt"), (3, 5, "Issue"), (5, 6, "Balance"))
        for start, end, label in groups:
            draw_text((xs[start] + xs[end]) / 2, top - h1 + 2.3 * mm, label, font="Helvetica-Oblique", size=8, align="center")
        for i, label in ((2, "Qty."), (3, "Qty."), (4, "Office"), (5, "Qty.")):
            draw_text((xs[i] + xs[i + 1]) / 2, top - h1 - h2 + 2 * mm, label, font=FONT_BOLD_NAME, size=8, align="center")

        for i in range(1, len(xs) - 1):
            # Issue Qty. / Office split only the lower header row
            top_y = top - h1 if i == 4 else top
            c.line(xs[i], top_y, xs[i], top - h1 - h2)
        return top - h1 - h2

    y = draw_table_header(y)
    c.setFont(FONT_REGULAR_NAME, 8)
    line_h = 6 * mm

    rows = [
        (
            e.date.isoformat(),
            (e.reference or "")[:24],
            format_qty(e.receipt_qty),
            format_qty(e.issue_qty),
            (e.issue_office or "")[:26],
            format_qty(e.balance_qty),
            format_qty(e.days_to_consume),
        )
        for e in entries
    ]
    # Pad with empty rows to match the printed template
    rows.extend([("",) * 7] * max(0, MIN_LEDGER_ROWS - len(rows)))

    for row in rows:
        # Page break
        if y - line_h < 15 * mm:
            c.showPage()
            y = draw_table_header(height - 15 * mm)
            c.setFont(FONT_REGULAR_NAME, 8)

        c.rect(left, y - line_h, xs[-1] - left, line_h, fill=0, stroke=1)
        for i in range(1, len(xs) - 1):
            c.line(xs[i], y, xs[i], y - line_h)
        for i, value in enumerate(row):
            if i in (1, 4):
                draw_text(xs[i] + 1.5 * mm, y - line_h + 2 * mm, value, size=8)
            else:
                draw_text((xs[i] + xs[i + 1]) / 2, y - line_h + 2 * mm, value, size=8, align="center")
        y -= line_h

    c.showPage()
    c.save()
