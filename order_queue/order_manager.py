"""
Production Cycle Client - Order Queue Manager

Manages one pair of controller order queues bound to a queue index:

    Client (queue_order)          -> productionQueue{i}Order  -> Controller
    Client (dequeue_order_result) <- productionQueue{i}Result <- Controller

Both queues are circular buffers stored on the controller. Each pointer has a
single owner: this client advances the order write pointer and the result read
pointer, the controller advances the order read pointer and the result write
pointer. Pointers are 1-based and one slot is always left empty so that a full
queue can be told apart from an empty one.

IO names (queue index i):
    productionQueue{i}Order, productionQueue{i}Result
    location{i}OrderReadPointer, location{i}OrderWritePointer
    location{i}OrderResultReadPointer, location{i}OrderResultWritePointer
"""

import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from utils.config import BOOTSTRAP_TIMEOUT, POLL_INTERVAL, QUEUE_FULL_LOG_INTERVAL, QUEUE_INDEX
from utils.logging_config import get_logger

from .entries import Entry, decode_entry, validate_entry
from .errors import (
    BootstrapTimeout,
    EntryDecodeError,
    NotBootstrappedError,
    OperationCancelled,
    QueueFull,
    RemoteError,
)
from .pointers import is_valid_pointer, next_pointer, pending_count, slot_index

if TYPE_CHECKING:
    from controller_client.channel import RemoteStateChannel

logger = get_logger("order_queue")


class FullQueuePolicy(Enum):
    """What ``queue_order`` does when the order queue has no free slot."""
    FAIL_FAST = "FAIL_FAST"  # raise QueueFull
    BLOCK = "BLOCK"          # poll until the controller frees a slot


@dataclass(frozen=True)
class QueueIONames:
    """Controller IO names of one order/result queue pair."""
    order_queue: str
    result_queue: str
    order_read_pointer: str
    order_write_pointer: str
    result_read_pointer: str
    result_write_pointer: str

    @classmethod
    def for_queue(cls, queue_index: int) -> "QueueIONames":
        return cls(
            order_queue=f"productionQueue{queue_index}Order",
            result_queue=f"productionQueue{queue_index}Result",
            order_read_pointer=f"location{queue_index}OrderReadPointer",
            order_write_pointer=f"location{queue_index}OrderWritePointer",
            result_read_pointer=f"location{queue_index}OrderResultReadPointer",
            result_write_pointer=f"location{queue_index}OrderResultWritePointer",
        )

    def order_slot(self, pointer: int) -> str:
        return f"{self.order_queue}[{slot_index(pointer)}]"

    def result_slot(self, pointer: int) -> str:
        return f"{self.result_queue}[{slot_index(pointer)}]"


class OrderManager:
    """
    Producer of order entries and consumer of order results for one queue index.

    The instance is unusable until ``initialize_order_pointers`` succeeds.
    ``queue_order`` and ``dequeue_order_result`` may run on different threads;
    each direction is serialized by its own lock.

    Attributes
    ----------
    queue_index : int
        Index used to build the controller IO names.
    queue_length : int
        Number of slots in the order queue, 0 until bootstrap.
    order_write_pointer : int
        Next order slot to write (1-based), owned by this instance.
    result_read_pointer : int
        Next result slot to read (1-based), owned by this instance.
    full_queue_policy : FullQueuePolicy
        Backpressure behaviour of ``queue_order``.
    """

    def __init__(
        self,
        channel: "RemoteStateChannel",
        queue_index: int = QUEUE_INDEX,
        full_queue_policy: FullQueuePolicy = FullQueuePolicy.FAIL_FAST,
        poll_interval: float = POLL_INTERVAL,
        full_log_interval: float = QUEUE_FULL_LOG_INTERVAL,
    ):
        self.channel = channel
        self.queue_index = queue_index
        self.io_names = QueueIONames.for_queue(queue_index)
        self.full_queue_policy = full_queue_policy
        self.poll_interval = poll_interval
        self.full_log_interval = full_log_interval

        self.queue_length = 0
        self.order_write_pointer = 0
        self.result_read_pointer = 0
        self._initialized = False

        self._order_lock = threading.Lock()
        self._result_lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"OrderManager(queue_index={self.queue_index}, queue_length={self.queue_length}, "
            f"order_write_pointer={self.order_write_pointer}, "
            f"result_read_pointer={self.result_read_pointer})"
        )

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotBootstrappedError(
                f"Order queue {self.queue_index} pointers are not initialized"
            )

    def _received_pointer(self, io_name: str, received: Optional[Mapping[str, Any]] = None) -> Any:
        if received is None:
            received = self.channel.read_received_snapshot()
        return received.get(io_name, 0)

    def _read_pointers(self) -> Dict[str, Any]:
        """Sample all four pointers from one received snapshot."""
        received = self.channel.read_received_snapshot()
        return {
            io_name: self._received_pointer(io_name, received)
            for io_name in (
                self.io_names.order_write_pointer,
                self.io_names.result_read_pointer,
                self.io_names.order_read_pointer,
                self.io_names.result_write_pointer,
            )
        }

    def _read_remote_pointer(self, io_name: str) -> int:
        """Read a controller-owned pointer, rejecting out-of-range values."""
        pointer = self._received_pointer(io_name)
        if not is_valid_pointer(pointer, self.queue_length):
            raise RemoteError(
                f"Controller reported invalid pointer {io_name}={pointer!r} "
                f"(queue length {self.queue_length})",
                raw_response=pointer,
            )
        return pointer

    # =========================================================================
    # Bootstrap
    # =========================================================================

    def initialize_order_pointers(self, timeout: float = BOOTSTRAP_TIMEOUT) -> None:
        """
        Read the order queue length and wait for valid queue pointers.

        Parameters
        ----------
        timeout : float
            Seconds to wait for all four pointers to be in ``[1, queue_length]``.

        Raises
        ------
        BootstrapTimeout
            If the pointers are still invalid when the timeout elapses.
        RemoteError
            If the order queue cannot be read.
        """
        start_time = time.monotonic()

        # queue length is fixed on the controller, read it once
        io_name = self.io_names.order_queue
        order_queue = self.channel.read_variable(io_name)
        if isinstance(order_queue, (str, bytes, Mapping)) or not isinstance(order_queue, Sequence):
            raise EntryDecodeError(f"Order queue {io_name} is not an array: {order_queue!r}", value=order_queue)
        self.queue_length = len(order_queue)
        logger.info("[OrderManager] Order queue length is %d", self.queue_length)

        while True:
            pointers = self._read_pointers()
            invalid = {
                name: value for name, value in pointers.items()
                if not is_valid_pointer(value, self.queue_length)
            }
            if not invalid:
                break
            if time.monotonic() - start_time > timeout:
                raise BootstrapTimeout(
                    f"Production cycle order queue pointers are invalid: {invalid}",
                    pointers=pointers,
                )
            logger.debug("[OrderManager] Waiting for valid order queue pointers: %s", invalid)
            time.sleep(self.poll_interval)

        self.order_write_pointer = pointers[self.io_names.order_write_pointer]
        self.result_read_pointer = pointers[self.io_names.result_read_pointer]
        self._initialized = True
        logger.info(
            "[OrderManager] Initialized order pointers for queue %d: write=%d, result read=%d",
            self.queue_index, self.order_write_pointer, self.result_read_pointer,
        )

    # =========================================================================
    # Producer: Order Queue
    # =========================================================================

    def _wait_for_capacity(self, next_write_pointer: int, stop_event: Optional[threading.Event]) -> None:
        """Poll the order read pointer until the next write slot is free."""
        last_log_time = None
        while True:
            if stop_event is not None and stop_event.is_set():
                raise OperationCancelled(
                    f"Cancelled while waiting for free slot in order queue {self.queue_index}"
                )
            now = time.monotonic()
            if last_log_time is None or now - last_log_time >= self.full_log_interval:
                logger.warning(
                    "[OrderManager] Order queue %d is full (length=%d), waiting for controller",
                    self.queue_index, self.queue_length,
                )
                last_log_time = now
            if stop_event is not None:
                stop_event.wait(self.poll_interval)
            else:
                time.sleep(self.poll_interval)
            if self._read_remote_pointer(self.io_names.order_read_pointer) != next_write_pointer:
                return

    def queue_order(self, order_entry: Mapping[str, Any], stop_event: Optional[threading.Event] = None) -> None:
        """
        Queue an order entry to the order queue.

        Parameters
        ----------
        order_entry : Mapping[str, Any]
            Order fields as configured on the controller.
        stop_event : threading.Event, optional
            Cancels the wait for a free slot under ``FullQueuePolicy.BLOCK``.

        Raises
        ------
        QueueFull
            If the queue is full under ``FullQueuePolicy.FAIL_FAST``.
        InvalidEntryError
            If the entry holds unsupported values.
        RemoteError
            If the controller cannot be written. Local state is unchanged.
        """
        self._require_initialized()
        entry = validate_entry(order_entry)

        with self._order_lock:
            order_read_pointer = self._read_remote_pointer(self.io_names.order_read_pointer)
            next_write_pointer = next_pointer(self.order_write_pointer, self.queue_length)

            if next_write_pointer == order_read_pointer:
                if self.full_queue_policy is FullQueuePolicy.FAIL_FAST:
                    raise QueueFull(self.queue_length)
                self._wait_for_capacity(next_write_pointer, stop_event)

            # slot before pointer so a consumer never sees the pointer ahead of its entry
            variables = {
                self.io_names.order_slot(self.order_write_pointer): entry,
                self.io_names.order_write_pointer: next_write_pointer,
            }
            self.channel.write_variables(variables)
            self.order_write_pointer = next_write_pointer

        logger.debug("[OrderManager] Queued order to queue %d, write pointer now %d",
                     self.queue_index, self.order_write_pointer)

    # =========================================================================
    # Consumer: Result Queue
    # =========================================================================

    def dequeue_order_result(self) -> Optional[Entry]:
        """
        Dequeue the next entry of the order result queue.

        Returns
        -------
        Optional[dict]
            Order result, or None if there is no result entry to be read.

        Raises
        ------
        RemoteError
            If the result or the read pointer cannot be transferred.
        EntryDecodeError
            If the result slot does not hold an entry.
        """
        self._require_initialized()

        with self._result_lock:
            result_write_pointer = self._read_remote_pointer(self.io_names.result_write_pointer)
            if result_write_pointer == self.result_read_pointer:
                return None

            io_name = self.io_names.result_slot(self.result_read_pointer)
            result_entry = decode_entry(self.channel.read_variable(io_name), io_name)

            new_read_pointer = next_pointer(self.result_read_pointer, self.queue_length)
            self.channel.write_variables({self.io_names.result_read_pointer: new_read_pointer})
            self.result_read_pointer = new_read_pointer

        return result_entry

    def reset_results(self) -> int:
        """
        Discard unread results by moving the read pointer to the write pointer.

        Returns
        -------
        int
            Number of result entries discarded.
        """
        self._require_initialized()

        with self._result_lock:
            result_write_pointer = self._read_remote_pointer(self.io_names.result_write_pointer)
            if result_write_pointer == self.result_read_pointer:
                return 0

            discarded = pending_count(self.result_read_pointer, result_write_pointer, self.queue_length)
            self.channel.write_variables({self.io_names.result_read_pointer: result_write_pointer})
            self.result_read_pointer = result_write_pointer

        logger.warning("[OrderManager] Discarded %d unread order results in queue %d",
                       discarded, self.queue_index)
        return discarded
