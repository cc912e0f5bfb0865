"""
Tests for StockCardRepository: the read-modify-recompute-write cycle against SQLite.
"""
import pytest
from sqlalchemy.exc import OperationalError

from models.stock_card import StockCard, StockCardTransaction
from utils.ledger import InvalidQuantity, TransactionNotFound
from utils.persistence import InvalidStockCard, PersistenceError, RecordNotFound, StockCardRepository


@pytest.fixture()
def repo(db_session):
    return StockCardRepository(db_session)


@pytest.fixture()
def card(repo, ballpoint_pen):
    header, transactions = ballpoint_pen
    return repo.create_card(header, transactions)


def _stored_balances(db_session, card_id):
    rows = (
        db_session.query(StockCardTransaction)
        .filter(StockCardTransaction.stock_card_id == card_id)
        .order_by(StockCardTransaction.date, StockCardTransaction.seq)
        .all()
    )
    return [r.balance_qty for r in rows]


class TestStockCards:

    def test_create_stores_computed_balances(self, db_session, card):
        assert card.id
        assert card.item_name == "Ballpoint Pen"
        assert _stored_balances(db_session, card.id) == [200, 150, 120]

    def test_create_fills_month_and_year_labels(self, repo, card):
        rows = repo.list_transactions(card.id)
        assert [(r.month, r.year) for r in rows] == [(4, 2025)] * 3
        assert [r.seq for r in rows] == [0, 1, 2]

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_item_name_required(self, repo, name):
        with pytest.raises(InvalidStockCard):
            repo.create_card({"item_name": name})

    def test_invalid_initial_ledger_writes_nothing(self, db_session, repo):
        with pytest.raises(InvalidQuantity):
            repo.create_card({"item_name": "Stapler"}, [{"date": "2025-01-01", "receipt_qty": "lots"}])
        assert db_session.query(StockCard).count() == 0

    def test_update_header(self, repo, card):
        updated = repo.update_card(card.id, {"description": "Black ink", "reorder_point": 80})
        assert updated.description == "Black ink"
        assert updated.reorder_point == 80
        assert updated.item_name == "Ballpoint Pen"

    def test_update_cannot_blank_item_name(self, repo, card):
        with pytest.raises(InvalidStockCard):
            repo.update_card(card.id, {"item_name": " "})

    def test_get_missing_card(self, repo):
        with pytest.raises(RecordNotFound):
            repo.get_card("nope")

    def test_delete_cascades(self, db_session, repo, card):
        repo.delete_card(card.id)
        assert db_session.query(StockCard).count() == 0
        assert db_session.query(StockCardTransaction).count() == 0

    def test_delete_missing_card(self, repo):
        with pytest.raises(RecordNotFound):
            repo.delete_card("nope")

    def test_list_and_search(self, repo, card):
        repo.create_card({"item_name": "A4 Paper", "stock_no": "S-002", "entity_name": "Department of Education"})
        repo.create_card({"item_name": "Face Mask", "stock_no": "S-003", "entity_name": "Department of Health"})

        cards, total = repo.list_cards()
        assert total == 3
        assert [c.item_name for c in cards] == ["A4 Paper", "Ballpoint Pen", "Face Mask"]

        cards, total = repo.list_cards(q="education")
        assert total == 2

        cards, total = repo.list_cards(q="s-003")
        assert [c.item_name for c in cards] == ["Face Mask"]

        cards, total = repo.list_cards(page=2, page_size=2)
        assert total == 3
        assert [c.item_name for c in cards] == ["Face Mask"]

    def test_last_updated(self, repo, card):
        assert repo.last_updated(card).isoformat() == "2025-04-20"
        empty = repo.create_card({"item_name": "Stapler"})
        assert repo.last_updated(empty) is not None


class TestLedgerWrites:

    def test_add_out_of_order(self, db_session, repo, card):
        result, tx_id = repo.add_transaction(card.id, {"date": "2025-04-12", "issue_qty": 10})

        assert result.balances == [200, 190, 140, 110]
        assert _stored_balances(db_session, card.id) == [200, 190, 140, 110]
        stored = db_session.get(StockCardTransaction, tx_id)
        assert stored.seq == 3

    def test_remove_recomputes_later_balances(self, db_session, repo, card):
        middle = repo.list_transactions(card.id)[1]
        result = repo.remove_transaction(card.id, middle.id)

        assert result.current_balance == 170
        assert _stored_balances(db_session, card.id) == [200, 170]

    def test_remove_unknown_transaction(self, db_session, repo, card):
        with pytest.raises(TransactionNotFound):
            repo.remove_transaction(card.id, "missing")
        assert _stored_balances(db_session, card.id) == [200, 150, 120]

    def test_add_to_missing_card(self, repo):
        with pytest.raises(RecordNotFound):
            repo.add_transaction("nope", {"date": "2025-04-12", "issue_qty": 10})

    def test_bad_quantity_leaves_ledger_untouched(self, db_session, repo, card):
        with pytest.raises(InvalidQuantity):
            repo.add_transaction(card.id, {"date": "2025-04-12", "issue_qty": -3})
        assert _stored_balances(db_session, card.id) == [200, 150, 120]

    def test_ledger_matches_engine(self, repo, card):
        result = repo.ledger(card.id)
        assert result.balances == [200, 150, 120]
        assert result.current_balance == 120

    def test_delete_transactions(self, repo, card):
        assert repo.delete_transactions(card.id) == 3
        assert repo.ledger(card.id).current_balance == 0

    def test_storage_failure_is_wrapped(self, repo, card, monkeypatch):
        def broken_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(repo.db, "commit", broken_commit)
        with pytest.raises(PersistenceError):
            repo.add_transaction(card.id, {"date": "2025-04-12", "issue_qty": 10})

    def test_stale_writer_cannot_reuse_seq(self, db_session, repo, card, monkeypatch):
        rows = repo.list_transactions(card.id)
        # A writer that never saw the newest row picks its seq again
        monkeypatch.setattr(repo, "list_transactions", lambda card_id: rows[:-1])

        with pytest.raises(PersistenceError):
            repo.add_transaction(card.id, {"date": "2025-04-12", "issue_qty": 10})

        monkeypatch.undo()
        assert [r.seq for r in repo.list_transactions(card.id)] == [0, 1, 2]
        assert _stored_balances(db_session, card.id) == [200, 150, 120]
