from __future__ import annotations


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling core."""


class ValidationError(SchedulingError, ValueError):
    """A reassignment request that cannot be applied (unknown order, bad estimate)."""


class PersistError(SchedulingError):
    """The assignment write to the order store failed."""

    def __init__(self, order_id: str, message: str) -> None:
        super().__init__(f"{order_id}: {message}")
        self.order_id = order_id
        self.message = message


class ConflictError(PersistError):
    """The order changed in the store since the board read it."""
