from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from .common import gen_id, utcnow

class Client(BaseModel):
    id: str = Field(default_factory=gen_id)
    user_id: str | None = None
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = None
    company_name: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"extra": "ignore"}

    @property
    def display_name(self) -> str:
        return self.company_name or self.name

    def address_lines(self) -> list[str]:
        lines = [self.address] if self.address else []
        tail = " ".join(p for p in (self.state, self.zip_code) if p)
        city = ", ".join(p for p in (self.city, tail) if p)
        if city:
            lines.append(city)
        return lines
