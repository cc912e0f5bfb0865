import os
import sys
import logging

import pandas as pd

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from database import SessionLocal, init_db
from models.stock_card import StockCard, StockCardTransaction
from utils.persistence import StockCardRepository, HEADER_FIELDS

logger = logging.getLogger("populate_db")

# Configuration
DATA_DIR = os.path.join(os.path.dirname(__file__), "data_source")
CARDS_CSV = os.path.join(DATA_DIR, "stock_cards.csv")
TRANSACTIONS_CSV = os.path.join(DATA_DIR, "transactions.csv")
# End Configuration


def _clean(value):
    # pandas reads empty cells as NaN and numbers as numpy scalars
    if pd.isna(value):
        return None
    return value.item() if hasattr(value, "item") else value


def load_all_data(reset: bool = True) -> int:
    """Loads sample stock cards and their ledgers from CSV. Balances are recomputed, not read."""
    init_db()
    session = SessionLocal()

    try:
        cards_df = pd.read_csv(CARDS_CSV, dtype={"stock_no": str})
        tx_df = pd.read_csv(TRANSACTIONS_CSV, dtype={"stock_no": str, "reference": str, "issue_office": str})
    except FileNotFoundError:
        logger.error("CSV files not found in %s", DATA_DIR)
        session.close()
        return 0

    tx_df = tx_df.fillna({"receipt_qty": 0, "issue_qty": 0, "days_to_consume": 0})

    try:
        if reset:
            session.query(StockCardTransaction).delete()
            session.query(StockCard).delete()
            session.commit()

        repo = StockCardRepository(session)
        created = 0
        for _, row in cards_df.iterrows():
            header = {field: _clean(row.get(field)) for field in HEADER_FIELDS}
            ledger_rows = tx_df[tx_df["stock_no"] == row["stock_no"]]
            transactions = [
                {
                    "date": tx["date"],
                    "reference": _clean(tx["reference"]),
                    "receipt_qty": _clean(tx["receipt_qty"]),
                    "issue_qty": _clean(tx["issue_qty"]),
                    "issue_office": _clean(tx["issue_office"]),
                    "days_to_consume": _clean(tx["days_to_consume"]),
                }
                for _, tx in ledger_rows.iterrows()
            ]
            card = repo.create_card(header, transactions)
            logger.info("Seeded %s (%s) with %d transactions", card.item_name, card.stock_no, len(transactions))
            created += 1
        return created
    finally:
        session.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    count = load_all_data()
    print(f"Seeded {count} stock cards.")
