from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from buildledger.ledger.totals import ZERO
from buildledger.services.client_service import ClientService
from buildledger.services.invoice_service import InvoiceService
from buildledger.services.project_service import ProjectService
from buildledger.services.quote_service import QuoteService

logger = logging.getLogger(__name__)


@dataclass
class DashboardStats:
    total_invoices: int = 0
    total_revenue: Decimal = ZERO
    outstanding_amount: Decimal = ZERO
    active_clients: int = 0
    pending_quotes: int = 0
    overdue_invoices: int = 0
    paid_invoices: int = 0
    projects_in_progress: int = 0


@dataclass
class UpcomingItem:
    id: str
    title: str
    description: str
    due_date: date
    type: Literal["invoice_due", "quote_expiry"]
    is_overdue: bool


@dataclass
class Activity:
    id: str
    type: Literal["invoice_created", "payment_received", "client_added", "quote_created"]
    title: str
    description: str
    timestamp: datetime


@dataclass
class DashboardData:
    stats: DashboardStats
    quote_statuses: Dict[str, int] = field(default_factory=dict)
    upcoming: List[UpcomingItem] = field(default_factory=list)
    recent_activity: List[Activity] = field(default_factory=list)


class DashboardService:
    """Read-only roll-ups over the user's documents. Every figure comes from the
    documents' engine-computed totals."""

    def __init__(self, clients: ClientService, projects: ProjectService, quotes: QuoteService, invoices: InvoiceService):
        self.clients = clients
        self.projects = projects
        self.quotes = quotes
        self.invoices = invoices

    def stats(self, today: Optional[date] = None) -> DashboardStats:
        invoices = self.invoices.list_invoices()
        quotes = self.quotes.list_quotes()
        open_invoices = [inv for inv in invoices if inv.status == "sent"]
        return DashboardStats(
            total_invoices=len(invoices),
            total_revenue=sum((inv.amount_paid for inv in invoices), ZERO),
            outstanding_amount=sum((inv.balance_due for inv in open_invoices), ZERO),
            active_clients=len(self.clients.list_clients()),
            pending_quotes=sum(1 for q in quotes if q.status in ("draft", "sent")),
            overdue_invoices=sum(1 for inv in open_invoices if inv.is_overdue(today)),
            paid_invoices=sum(1 for inv in invoices if inv.status == "paid"),
            projects_in_progress=self.projects.count_in_progress(),
        )

    def quote_status_breakdown(self, today: Optional[date] = None) -> Dict[str, int]:
        return dict(Counter(q.display_status(today) for q in self.quotes.list_quotes()))

    def upcoming_items(self, days: int = 14, today: Optional[date] = None) -> List[UpcomingItem]:
        today = today or date.today()
        horizon = today + timedelta(days=days)
        items: List[UpcomingItem] = []
        for inv in self.invoices.list_invoices():
            if inv.status == "sent" and inv.due_date and inv.due_date <= horizon:
                items.append(UpcomingItem(
                    id=f"invoice-{inv.id}",
                    title=f"Invoice {inv.invoice_number} due",
                    description=f"Balance due {inv.balance_due}",
                    due_date=inv.due_date,
                    type="invoice_due",
                    is_overdue=inv.is_overdue(today),
                ))
        for q in self.quotes.list_quotes():
            if q.status == "sent" and q.valid_until and q.valid_until <= horizon:
                items.append(UpcomingItem(
                    id=f"quote-{q.id}",
                    title=f"Quote {q.quote_number} expires",
                    description=f"Total {q.total_amount}",
                    due_date=q.valid_until,
                    type="quote_expiry",
                    is_overdue=q.is_expired(today),
                ))
        return sorted(items, key=lambda it: it.due_date)

    def recent_activity(self, limit: int = 10) -> List[Activity]:
        acts: List[Activity] = []
        for inv in self.invoices.list_invoices():
            acts.append(Activity(f"invoice-{inv.id}", "invoice_created",
                                 f"Invoice {inv.invoice_number} {inv.status}", f"Total {inv.total_amount}", inv.created_at))
            for p in inv.payments:
                if not p.voided:
                    acts.append(Activity(f"payment-{p.id}", "payment_received",
                                         "Payment received", f"{p.amount} on {inv.invoice_number}", p.created_at))
        for q in self.quotes.list_quotes():
            acts.append(Activity(f"quote-{q.id}", "quote_created",
                                 f"Quote {q.quote_number} {q.status}", f"Total {q.total_amount}", q.created_at))
        for c in self.clients.list_clients():
            acts.append(Activity(f"client-{c.id}", "client_added", "New client added", c.display_name, c.created_at))
        acts.sort(key=lambda a: a.timestamp, reverse=True)
        return acts[:limit]

    def load(self, today: Optional[date] = None) -> DashboardData:
        data = DashboardData(
            stats=self.stats(today),
            quote_statuses=self.quote_status_breakdown(today),
            upcoming=self.upcoming_items(today=today),
            recent_activity=self.recent_activity(),
        )
        logger.debug("Dashboard loaded: %s", data.stats)
        return data
