# backend/models/stock_card.py
import uuid

from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, CheckConstraint, Index, UniqueConstraint, func
from sqlalchemy.orm import relationship
from database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


# Model StockCard
# Header of a single inventory item card (Appendix 58): who holds it,
# which fund it belongs to and the item's catalogue data.
class StockCard(Base):
    __tablename__ = "stock_cards"

    id = Column(String(32), primary_key=True, default=_new_id)

    entity_name = Column(String)
    fund_cluster = Column(String)

    item_name = Column(String, nullable=False, index=True)
    stock_no = Column(String, index=True)
    description = Column(String)
    unit_of_measurement = Column(String)

    # Informational threshold, never enforced
    reorder_point = Column(Float, CheckConstraint("reorder_point IS NULL OR reorder_point >= 0"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    transactions = relationship(
        "StockCardTransaction",
        back_populates="stock_card",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: (StockCardTransaction.date, StockCardTransaction.seq),
    )


# Single ledger line of a stock card. balance_qty is derived by the ledger
# engine and rewritten for the whole card whenever the set changes.
class StockCardTransaction(Base):
    __tablename__ = "stock_card_transactions"

    id = Column(String(32), primary_key=True, default=_new_id)
    stock_card_id = Column(String(32), ForeignKey("stock_cards.id", ondelete="CASCADE"), nullable=False, index=True)

    date = Column(Date, nullable=False)
    # Redundant labels kept for period lookups
    month = Column(Integer, nullable=True)
    year = Column(Integer, nullable=True)

    reference = Column(String, nullable=True)
    receipt_qty = Column(Float, CheckConstraint("receipt_qty >= 0"), nullable=False, default=0)
    issue_qty = Column(Float, CheckConstraint("issue_qty >= 0"), nullable=False, default=0)
    issue_office = Column(String, nullable=True)

    balance_qty = Column(Float, nullable=False, default=0)
    days_to_consume = Column(Float, nullable=False, default=0)

    # Insertion order within the card
    seq = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    stock_card = relationship("StockCard", back_populates="transactions")

    __table_args__ = (
        UniqueConstraint("stock_card_id", "seq", name="uq_stock_card_transactions_card_seq"),
        Index("ix_stock_card_transactions_card_date_seq", "stock_card_id", "date", "seq"),
    )
