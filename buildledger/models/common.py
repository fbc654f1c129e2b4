from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
import uuid

def gen_id() -> str:
    return str(uuid.uuid4())

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

ZERO = Decimal("0")
