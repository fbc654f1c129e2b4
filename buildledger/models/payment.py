from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from .common import gen_id, utcnow

# stored rows are free-form, new payments must use one of these
PAYMENT_METHODS = ("cash", "check", "credit_card", "bank_transfer", "other")

class Payment(BaseModel):
    id: str = Field(default_factory=gen_id)
    invoice_id: Optional[str] = None
    amount: Decimal
    payment_date: date = Field(default_factory=date.today)
    payment_method: str = "other"
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    voided: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"extra": "ignore"}
