"""Totals/derivation engine.

Everything here is a pure function of the line items, tax rate and payments
it is given. Amounts accumulate at full precision; ``round_money`` is applied
once, on the figure being displayed, never per line.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Union

from buildledger.ledger.errors import InvalidInputError
from buildledger.models.line_item import LineItem
from buildledger.models.payment import Payment

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value: Optional[Number]) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() so that 0.1 stays 0.1 instead of its binary expansion
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidInputError(f"not a number: {value!r}") from e


def round_money(value: Number, places: Decimal = CENT) -> Decimal:
    return to_decimal(value).quantize(places, rounding=ROUND_HALF_UP)


def _check_non_negative(value: Decimal, what: str) -> Decimal:
    if not value.is_finite():
        raise InvalidInputError(f"{what} must be a finite number (got {value})")
    if value < 0:
        raise InvalidInputError(f"{what} must be >= 0 (got {value})")
    return value


# ---------- Operations ---------- #

def compute_subtotal(line_items: Iterable[LineItem]) -> Decimal:
    total = ZERO
    for item in line_items:
        qty = _check_non_negative(to_decimal(item.quantity), "quantity")
        price = _check_non_negative(to_decimal(item.unit_price), "unit price")
        total += qty * price
    return total


def compute_tax(subtotal: Number, tax_rate_percent: Number) -> Decimal:
    rate = _check_non_negative(to_decimal(tax_rate_percent), "tax rate")
    return to_decimal(subtotal) * rate / HUNDRED


def compute_total(subtotal: Number, tax_amount: Number) -> Decimal:
    return to_decimal(subtotal) + to_decimal(tax_amount)


def compute_amount_paid(payments: Iterable[Payment]) -> Decimal:
    return sum((to_decimal(p.amount) for p in payments if not p.voided), ZERO)


def compute_balance_due(total: Number, amount_paid: Number) -> Decimal:
    # negative means overpaid; display treatment is up to the caller
    return to_decimal(total) - to_decimal(amount_paid)


# ---------- Document roll-up ---------- #

@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal = ZERO

    @property
    def balance_due(self) -> Decimal:
        # billed amount is the rounded total, payments are whole cents
        return compute_balance_due(round_money(self.total_amount), self.amount_paid)

    def rounded(self) -> dict[str, Decimal]:
        """Display figures, each rounded once from the full-precision value."""
        return {
            "subtotal": round_money(self.subtotal),
            "tax_rate": self.tax_rate,
            "tax_amount": round_money(self.tax_amount),
            "total_amount": round_money(self.total_amount),
            "amount_paid": round_money(self.amount_paid),
            "balance_due": round_money(self.balance_due),
        }


def compute_document_totals(
    line_items: Iterable[LineItem],
    tax_rate: Number,
    payments: Iterable[Payment] = (),
) -> DocumentTotals:
    subtotal = compute_subtotal(line_items)
    rate = to_decimal(tax_rate)
    tax = compute_tax(subtotal, rate)
    return DocumentTotals(
        subtotal=subtotal,
        tax_rate=rate,
        tax_amount=tax,
        total_amount=compute_total(subtotal, tax),
        amount_paid=compute_amount_paid(payments),
    )


def totals_for(doc: Any) -> DocumentTotals:
    return compute_document_totals(doc.line_items, doc.tax_rate, getattr(doc, "payments", ()))


def refresh_totals(doc: Any) -> Any:
    """Copy of a quote/invoice with its stored snapshot recomputed from scratch."""
    t = totals_for(doc)
    update: dict[str, Decimal] = {
        "subtotal": round_money(t.subtotal),
        "tax_amount": round_money(t.tax_amount),
        "total_amount": round_money(t.total_amount),
    }
    if hasattr(doc, "payments"):
        update["amount_paid"] = round_money(t.amount_paid)
        update["balance_due"] = round_money(t.balance_due)
    return doc.model_copy(update=update)
