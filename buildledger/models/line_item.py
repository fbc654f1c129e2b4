from __future__ import annotations
from pydantic import BaseModel, Field, computed_field, field_validator
from typing import Literal, Optional
from decimal import Decimal
from .common import gen_id

ItemType = Literal["service", "material", "labor"]

class LineItem(BaseModel):
    id: str = Field(default_factory=gen_id)
    project_id: Optional[str] = None
    document_id: Optional[str] = None  # quote/invoice owning the row
    item_type: ItemType = "service"
    description: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")

    model_config = {"extra": "ignore"}

    @field_validator("description")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("description is required")
        return v.strip()

    # unrounded, rounding happens once on the document total
    @computed_field  # type: ignore[misc]
    @property
    def total_price(self) -> Decimal:
        return self.quantity * self.unit_price
