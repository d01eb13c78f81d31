"""
Production Cycle Client - Error Taxonomy

Every failure raised by the order queue protocol, the controller channel and
the production cycle helpers derives from ``ProductionCycleError`` so that
long-running loops can catch one type, log it, and keep going.
"""

from typing import Any, Optional


class ProductionCycleError(Exception):
    """Base class for all production cycle client errors."""


class BootstrapTimeout(ProductionCycleError):
    """Order queue pointers did not become valid before the deadline."""

    def __init__(self, message: str, pointers: Optional[dict] = None):
        super().__init__(message)
        self.pointers = pointers or {}


class QueueFull(ProductionCycleError):
    """Order queue has no free slot (fail-fast policy only)."""

    def __init__(self, queue_length: int):
        super().__init__(
            f"Failed to queue new order entry because order queue is full (length={queue_length})."
        )
        self.queue_length = queue_length


class RemoteError(ProductionCycleError):
    """Transport or protocol level failure talking to the controller.

    Attributes
    ----------
    raw_response : Any
        Raw response body (or ``None`` when the request never completed).
    """

    def __init__(self, message: str, raw_response: Any = None):
        super().__init__(message)
        self.raw_response = raw_response


class EntryDecodeError(ProductionCycleError):
    """A queue slot value cannot be interpreted as an entry."""

    def __init__(self, message: str, value: Any = None):
        super().__init__(message)
        self.value = value


class InvalidEntryError(ProductionCycleError, ValueError):
    """An order entry was rejected before being written to the queue."""


class NotBootstrappedError(ProductionCycleError):
    """Queue operation attempted before pointer bootstrap succeeded."""


class OperationCancelled(ProductionCycleError):
    """A blocking wait was cancelled through its stop event."""


class CycleStartTimeout(ProductionCycleError):
    """Production cycle did not report running before the deadline."""
