from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime, date
from decimal import Decimal
from .common import gen_id, utcnow, ZERO
from .line_item import LineItem

QuoteStatus = Literal["draft", "sent", "accepted", "rejected"]

# values written by older versions
_LEGACY_STATUS = {"approved": "accepted", "expired": "sent"}

class Quote(BaseModel):
    id: str = Field(default_factory=gen_id)
    quote_number: Optional[str] = None
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    status: QuoteStatus = "draft"

    line_items: List[LineItem] = Field(default_factory=list)
    tax_rate: Decimal = ZERO
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None

    # snapshot, rewritten by ledger.totals.refresh_totals
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    sent_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None

    model_config = {"extra": "ignore"}

    @field_validator("status", mode="before")
    @classmethod
    def _legacy_status(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return _LEGACY_STATUS.get(v, v)
        return v

    def is_expired(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return self.valid_until is not None and self.valid_until < today

    def display_status(self, today: Optional[date] = None) -> str:
        if self.status == "sent" and self.is_expired(today):
            return "expired"
        return self.status
