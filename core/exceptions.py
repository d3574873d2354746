"""Exception types shared by the ledger services and the HTTP layer."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ledger errors."""


class CodeNotFoundError(LedgerError):
    """Raised when a code id does not exist in the store."""

    def __init__(self, code_id: str) -> None:
        self.code_id = code_id
        super().__init__(f"Code '{code_id}' not found")


class ImportDataError(LedgerError, ValueError):
    """Raised when an imported document cannot be parsed or validated."""


class NotificationUnsupportedError(LedgerError):
    """Raised by a notifier that cannot deliver on the current platform."""
