from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime, date
from decimal import Decimal
from .common import gen_id, utcnow, ZERO
from .line_item import LineItem
from .payment import Payment

InvoiceStatus = Literal["draft", "sent", "paid", "cancelled"]

class Invoice(BaseModel):
    id: str = Field(default_factory=gen_id)
    invoice_number: Optional[str] = None
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    quote_id: Optional[str] = None  # source quote, informational only
    status: InvoiceStatus = "draft"

    line_items: List[LineItem] = Field(default_factory=list)
    payments: List[Payment] = Field(default_factory=list)
    tax_rate: Decimal = ZERO
    due_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None

    # snapshot, rewritten by ledger.totals.refresh_totals
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    amount_paid: Decimal = ZERO
    balance_due: Decimal = ZERO

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    issued_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    model_config = {"extra": "ignore"}

    @field_validator("status", mode="before")
    @classmethod
    def _legacy_status(cls, v):
        # "overdue" is no longer stored, it is computed from "sent" + due date
        if isinstance(v, str):
            v = v.strip().lower()
            return "sent" if v == "overdue" else v
        return v

    def is_overdue(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return self.due_date is not None and self.due_date < today and self.status != "paid"

    def display_status(self, today: Optional[date] = None) -> str:
        if self.status == "sent" and self.is_overdue(today):
            return "overdue"
        return self.status
