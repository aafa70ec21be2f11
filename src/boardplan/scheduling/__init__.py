"""Scheduling package.

This package contains the planning board state and the reassignment protocol
(optimistic apply, persist, commit or roll back).
"""

from boardplan.scheduling.board import MoveOutcome, MoveStatus, ScheduleBoard
from boardplan.scheduling.transaction import DragMessage, PendingTransaction, WorkingSet, parse_cell_id, resolve_drop

__all__ = [
    "DragMessage",
    "MoveOutcome",
    "MoveStatus",
    "PendingTransaction",
    "ScheduleBoard",
    "WorkingSet",
    "parse_cell_id",
    "resolve_drop",
]
