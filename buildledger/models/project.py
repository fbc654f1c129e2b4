from __future__ import annotations
from pydantic import BaseModel, Field, model_validator
from typing import Literal, Optional
from datetime import date, datetime
from .common import gen_id, utcnow

ProjectStatus = Literal["draft", "quoted", "approved", "in_progress", "completed", "cancelled"]

class Project(BaseModel):
    id: str = Field(default_factory=gen_id)
    user_id: Optional[str] = None
    client_id: str
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    status: ProjectStatus = "draft"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"extra": "ignore"}

    @model_validator(mode="after")
    def _dates_in_order(self) -> "Project":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be after start_date")
        return self
