"""Core progress model, store and change notifications."""

from .events import ChangeNotifier, StoreEvent, StoreEventType
from .records import ProgressRecord, compute_percentage
from .store import ProgressStore

__all__ = [
    "ChangeNotifier",
    "StoreEvent",
    "StoreEventType",
    "ProgressRecord",
    "compute_percentage",
    "ProgressStore",
]
