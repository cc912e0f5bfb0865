# backend/schemas/stock_card.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import date, datetime
from typing import List, Optional, Union

# Quantities stay integers when they are whole numbers
Quantity = Union[int, float]


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


def _require_item_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Item name is required")
    return value


# --- Transactions ---

class TransactionCreate(BaseModel):
    date: date
    reference: Optional[str] = None
    receipt_qty: Quantity = Field(default=0, ge=0)
    issue_qty: Quantity = Field(default=0, ge=0)
    # Expected when issue_qty > 0, not enforced
    issue_office: Optional[str] = None
    days_to_consume: Quantity = Field(default=0, ge=0)
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=1)


class TransactionResponse(ORMBase):
    id: str
    date: date
    month: int
    year: int
    reference: Optional[str] = None
    receipt_qty: Quantity
    issue_qty: Quantity
    issue_office: Optional[str] = None
    balance_qty: Quantity
    days_to_consume: Quantity
    seq: int


class LedgerResponse(BaseModel):
    stock_card_id: str
    current_balance: Quantity
    transactions: List[TransactionResponse]


# --- Stock cards ---

class StockCardBase(ORMBase):
    entity_name: Optional[str] = None
    fund_cluster: Optional[str] = None
    item_name: str
    stock_no: Optional[str] = None
    description: Optional[str] = None
    unit_of_measurement: Optional[str] = None
    reorder_point: Optional[float] = Field(default=None, ge=0)


class StockCardCreate(StockCardBase):
    # Initial ledger lines saved together with the header
    transactions: List[TransactionCreate] = Field(default_factory=list)

    @field_validator("item_name")
    @classmethod
    def check_item_name(cls, value):
        return _require_item_name(value)


class StockCardUpdate(ORMBase):
    """Schema for PATCH requests - all fields optional."""
    entity_name: Optional[str] = None
    fund_cluster: Optional[str] = None
    item_name: Optional[str] = Field(None, description="Item name, cannot be blank")
    stock_no: Optional[str] = None
    description: Optional[str] = None
    unit_of_measurement: Optional[str] = None
    reorder_point: Optional[float] = Field(None, ge=0)

    @field_validator("item_name")
    @classmethod
    def check_item_name(cls, value):
        return _require_item_name(value)


class StockCardSummary(StockCardBase):
    id: str
    current_balance: Quantity
    last_updated: date
    below_reorder_point: bool = False


class StockCardPage(BaseModel):
    items: List[StockCardSummary]
    total: int
    page: int
    page_size: int


class StockCardDetail(StockCardSummary):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Years that have transactions, newest first (for the period filter)
    years: List[int]
    month: Optional[int] = None
    year: Optional[int] = None
    transactions: List[TransactionResponse]
