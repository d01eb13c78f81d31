"""
Production Cycle Client - Order Queue Package
"""

from .errors import (
    ProductionCycleError, BootstrapTimeout, QueueFull, RemoteError,
    EntryDecodeError, InvalidEntryError, NotBootstrappedError,
    OperationCancelled, CycleStartTimeout,
)
from .pointers import next_pointer, is_valid_pointer, slot_index, pending_count
from .entries import Entry, validate_entry, decode_entry
from .order_manager import OrderManager, FullQueuePolicy, QueueIONames
from .drain import ResultDrainLoop, ResultSink

__all__ = [
    "ProductionCycleError", "BootstrapTimeout", "QueueFull", "RemoteError",
    "EntryDecodeError", "InvalidEntryError", "NotBootstrappedError",
    "OperationCancelled", "CycleStartTimeout",
    "next_pointer", "is_valid_pointer", "slot_index", "pending_count",
    "Entry", "validate_entry", "decode_entry",
    "OrderManager", "FullQueuePolicy", "QueueIONames",
    "ResultDrainLoop", "ResultSink",
]
