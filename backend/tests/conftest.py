import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402

from database import Base, SessionLocal, engine, get_db  # noqa: E402
import models.stock_card  # noqa: E402,F401
import models.log  # noqa: E402,F401


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def export_dir(tmp_path, monkeypatch):
    import utils.pdf
    import utils.spreadsheet

    monkeypatch.setattr(utils.pdf, "STORAGE_DIR", tmp_path)
    monkeypatch.setattr(utils.spreadsheet, "STORAGE_DIR", tmp_path)
    return tmp_path


@pytest.fixture()
def client(db_session, export_dir):
    from main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def ballpoint_pen():
    """Header and ledger of the sample ballpoint pen card."""
    header = {
        "entity_name": "Department of Education",
        "fund_cluster": "General Fund",
        "item_name": "Ballpoint Pen",
        "stock_no": "S-001",
        "description": "Blue ballpoint pen, medium point",
        "unit_of_measurement": "piece",
        "reorder_point": 50,
    }
    transactions = [
        {"date": "2025-04-10", "reference": "PO-2025-001", "receipt_qty": 200, "issue_qty": 0,
         "issue_office": "", "days_to_consume": 0},
        {"date": "2025-04-15", "reference": "REQ-2025-001", "receipt_qty": 0, "issue_qty": 50,
         "issue_office": "Admin Office", "days_to_consume": 30},
        {"date": "2025-04-20", "reference": "REQ-2025-002", "receipt_qty": 0, "issue_qty": 30,
         "issue_office": "HR Department", "days_to_consume": 20},
    ]
    return header, transactions
