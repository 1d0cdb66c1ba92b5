"""Data models exposed by the MoiLedger application."""
from .pending_write import PendingWriteRow
from .records import Acknowledged, LocalRecord, PendingLocal, RecordState, Rejected

__all__ = [
    "Acknowledged",
    "LocalRecord",
    "PendingLocal",
    "PendingWriteRow",
    "RecordState",
    "Rejected",
]
