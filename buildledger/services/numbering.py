from __future__ import annotations
from datetime import date
from typing import Iterable, Optional


def next_document_number(prefix: str, existing: Iterable[Optional[str]], today: Optional[date] = None) -> str:
    """PREFIX-YYYYMMDD-NNN, NNN counting up within the day."""
    today = today or date.today()
    head = f"{prefix}-{today:%Y%m%d}-"
    max_n = 0
    for num in existing:
        if isinstance(num, str) and num.startswith(head):
            try:
                max_n = max(max_n, int(num[len(head):]))
            except ValueError:
                continue
    return f"{head}{max_n + 1:03d}"
