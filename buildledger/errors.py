"""Errors raised by the collaborators around the ledger engine
(storage, PDF, e-mail, identity)."""
from __future__ import annotations


class ServiceError(Exception):
    pass


class PersistenceError(ServiceError):
    pass


class PdfRenderError(ServiceError):
    pass


class EmailError(ServiceError):
    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


class UnauthenticatedError(ServiceError):
    def __init__(self, message: str = "no user is signed in"):
        super().__init__(message)


class LogoUploadError(ServiceError):
    pass
