from __future__ import annotations
from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional
from .common import gen_id

LogoPosition = Literal["top-left", "top-center", "top-right"]
LogoSize = Literal["small", "medium", "large"]

class Profile(BaseModel):
    """Company branding used on PDFs and outgoing emails."""
    id: str = Field(default_factory=gen_id)
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    trade_type: Optional[str] = None
    license_number: Optional[str] = None

    logo_path: Optional[str] = None
    logo_filename: Optional[str] = None
    logo_enabled: bool = True
    logo_position: LogoPosition = "top-right"
    logo_size: LogoSize = "medium"

    default_payment_terms: int = Field(default=30, ge=0)
    default_currency: str = "USD"
    invoice_prefix: str = "INV"
    quote_prefix: str = "QUO"

    model_config = {"extra": "ignore"}

    @property
    def display_name(self) -> str:
        return self.company_name or self.full_name or "Your Company"
