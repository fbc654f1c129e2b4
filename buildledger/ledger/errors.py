"""Errors raised by the document ledger engine.

The engine never catches its own errors: callers get them as-is and decide
how to present them.
"""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for every engine error."""


class InvalidInputError(LedgerError, ValueError):
    """Negative quantity, unit price or tax rate."""


class TransitionError(LedgerError):
    def __init__(self, kind: str, current: str, target: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.current = current
        self.target = target


class InvalidTransitionError(TransitionError):
    def __init__(self, kind: str, current: str, target: str):
        super().__init__(kind, current, target, f"cannot move {kind} from '{current}' to '{target}'")


class EmptyDocumentError(TransitionError):
    def __init__(self, kind: str, current: str, target: str = "sent"):
        super().__init__(kind, current, target, f"cannot send a {kind} without line items")


class ValidationError(LedgerError, ValueError):
    """Rejected payment (non-positive amount, or overpayment when disallowed)."""


class NotFoundError(LedgerError, LookupError):
    def __init__(self, what: str, ident: str):
        super().__init__(f"{what} {ident} not found")
        self.what = what
        self.ident = ident
