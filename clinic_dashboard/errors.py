"""Error conditions raised by the dashboard core.

Every one of them is caught at the API boundary and turned into a response;
none of them is fatal to the process.
"""
from __future__ import annotations


class DashboardError(Exception):
    """Base class for everything the core raises on purpose."""


class ValidationError(DashboardError):
    """A required field is missing or malformed."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class SlotConflict(DashboardError):
    """The requested start time is already taken by an active appointment."""

    def __init__(self, date: str, time: str):
        super().__init__(f"slot {date} {time} is already occupied")
        self.date = date
        self.time = time


class NotFound(DashboardError):
    def __init__(self, what: str, key: str):
        super().__init__(f"{what} {key} not found")
        self.what = what
        self.key = key


class StoreUnavailable(DashboardError):
    """The record store could not be reached or rejected the request."""

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class DuplicateRecord(StoreUnavailable):
    """Unique-key violation reported by the store (PostgREST code 23505)."""
