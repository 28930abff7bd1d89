# Overview: Typed error taxonomy for ticket stock, distribution and settlement.

"""
Every failure raised by the ticketing services is a TicketingError subclass.

Each class carries:
- code: stable machine-readable identifier returned to API callers
- http_status: status code the routes map it to

Several of these are legitimate concurrent-use races (NotAvailable,
AlreadySettled, RemainderAlreadyConsumed) rather than bugs, so callers
should report the specific kind instead of a generic failure.
"""

from __future__ import annotations


class TicketingError(Exception):
    """Base class for all ticketing domain errors."""

    code = "TICKETING_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class InvalidRange(TicketingError):
    """Serial range start must not exceed end."""
    code = "INVALID_RANGE"


class Overlap(TicketingError):
    """Serial range overlaps an existing bundle of the same color."""
    code = "OVERLAP"
    http_status = 409


class NotAvailable(TicketingError):
    """Stock bundle is not available for distribution."""
    code = "NOT_AVAILABLE"
    http_status = 409


class AlreadySettled(TicketingError):
    """Distribution is no longer open."""
    code = "ALREADY_SETTLED"
    http_status = 409


class OutOfRange(TicketingError):
    """Returned serial number is outside the distributed bundle."""
    code = "OUT_OF_RANGE"


class RemainderAlreadyConsumed(TicketingError):
    """Remainder stock from this settlement is already in use."""
    code = "REMAINDER_ALREADY_CONSUMED"
    http_status = 409


class NotFound(TicketingError):
    """Referenced record does not exist."""
    code = "NOT_FOUND"
    http_status = 404


class StaffOrRateNotFound(NotFound):
    """Staff member or ride is missing or inactive."""
    code = "STAFF_OR_RATE_NOT_FOUND"


class ArchivedScope(TicketingError):
    """Writes are only allowed against the active event session."""
    code = "ARCHIVED_SCOPE"
    http_status = 403


class InvalidTransition(TicketingError):
    """Status change is not a legal lifecycle edge."""
    code = "INVALID_TRANSITION"
    http_status = 409


class BulkImportError(TicketingError):
    """A bulk upload row failed; the whole batch was rolled back."""
    code = "BULK_IMPORT_FAILED"

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Row {line_number}: {reason}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["line_number"] = self.line_number
        return data
