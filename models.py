from typing import Any, Dict, List
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON
from pydantic import BaseModel, field_validator
from datetime import datetime, timezone
from decimal import Decimal

from compute import ADJUSTMENTS, to_amount, to_percent, to_quantity

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

# ============== Saved bills ==============
class BillBase(SQLModel):
    bill_name: str = ""
    total_amount: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)

class Bill(BillBase, table=True):
    key: str = Field(primary_key=True)
    # full engine input, as posted
    value: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), index=True)

# ============== Request bodies ==============
def _as_text(v):
    return "" if v is None else str(v)

class PersonIn(BaseModel):
    id: str = ""
    name: str = ""
    paid: Decimal = Decimal("0")

    @field_validator("id", "name", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)

    @field_validator("paid", mode="before")
    @classmethod
    def coerce_paid(cls, v):
        return to_amount(v)

class ItemIn(BaseModel):
    id: str = ""
    name: str = ""
    price: Decimal = Decimal("0")
    quantity: int = 1
    discount: Decimal = Decimal("0")
    assigned_to: List[str] = []

    @field_validator("id", "name", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v):
        return to_amount(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, v):
        return to_quantity(v)

    @field_validator("discount", mode="before")
    @classmethod
    def coerce_discount(cls, v):
        return to_percent(v)

    @field_validator("assigned_to", mode="before")
    @classmethod
    def coerce_assigned(cls, v):
        return [str(x) for x in v or []]

class DiscountIn(BaseModel):
    id: str = ""
    percent: Decimal = Decimal("0")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)

    @field_validator("percent", mode="before")
    @classmethod
    def coerce_percent(cls, v):
        return to_percent(v)

class BillIn(BaseModel):
    """Everything needed to rebuild a bill; every field defaults so older records still load."""
    bill_name: str = ""
    people: List[PersonIn] = []
    items: List[ItemIn] = []
    use_itemized_list: bool = False
    bill_amount: Decimal = Decimal("0")
    tip_percent: Decimal = Decimal("0")
    tax_percent: Decimal = Decimal("0")
    global_discounts: List[DiscountIn] = []
    delivery_fee: Decimal = Decimal("0")
    active_adjustments: List[str] = []

    @field_validator("bill_name", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)

    @field_validator("bill_amount", "tip_percent", "tax_percent", "delivery_fee", mode="before")
    @classmethod
    def coerce_amounts(cls, v):
        return to_amount(v)

    @field_validator("use_itemized_list", mode="before")
    @classmethod
    def coerce_flag(cls, v):
        return bool(v)

    @field_validator("active_adjustments", mode="before")
    @classmethod
    def coerce_active(cls, v):
        active = set(str(a) for a in v or [])
        return [a for a in ADJUSTMENTS if a in active]

    @field_validator("people", "items", "global_discounts", mode="before")
    @classmethod
    def coerce_rows(cls, v):
        return [r for r in v or [] if r is not None]
