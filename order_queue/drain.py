"""
Production Cycle Client - Order Result Drain Loop

Continuously dequeues order results and hands each one to a sink. A failed
attempt is logged and retried; only the stop event ends the loop.
"""

import threading
from typing import Any, Callable, Dict, Optional

from utils.config import ERROR_RETRY_INTERVAL, POLL_INTERVAL
from utils.logging_config import get_logger

from .errors import ProductionCycleError
from .order_manager import OrderManager

logger = get_logger("order_queue.drain")

ResultSink = Callable[[Dict[str, Any]], None]


class ResultDrainLoop:
    """
    Consumer of one order result queue.

    Attributes
    ----------
    drained_count : int
        Results delivered to the sink so far.
    error_count : int
        Failed dequeue or sink attempts so far.
    """

    def __init__(
        self,
        order_manager: OrderManager,
        sink: ResultSink,
        poll_interval: float = POLL_INTERVAL,
        error_interval: float = ERROR_RETRY_INTERVAL,
    ):
        self.order_manager = order_manager
        self.sink = sink
        self.poll_interval = poll_interval
        self.error_interval = error_interval
        self.drained_count = 0
        self.error_count = 0
        self._undelivered: Optional[Dict[str, Any]] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def drain_once(self) -> bool:
        """
        Dequeue at most one result and forward it to the sink.

        Returns
        -------
        bool
            True if a result was delivered, False if the queue was empty.
        """
        # a result the sink rejected is already off the queue, deliver it first
        result_entry = self._undelivered
        if result_entry is None:
            result_entry = self.order_manager.dequeue_order_result()
            if result_entry is None:
                return False
            self._undelivered = result_entry
        self.sink(result_entry)
        self._undelivered = None
        self.drained_count += 1
        return True

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Drain results until ``stop_event`` is set."""
        stop_event = stop_event or self._stop_event
        logger.info("[Drain] Draining order results of queue %d", self.order_manager.queue_index)
        while not stop_event.is_set():
            try:
                if self.drain_once():
                    # keep going while results are available
                    continue
                wait = self.poll_interval
            except ProductionCycleError as e:
                self.error_count += 1
                logger.warning("[Drain] Failed to dequeue order result: %s", e)
                wait = self.error_interval
            except Exception:
                self.error_count += 1
                if self._undelivered is not None:
                    logger.exception("[Drain] Result sink failed")
                else:
                    logger.exception("[Drain] Failed to dequeue order result")
                wait = self.error_interval
            stop_event.wait(wait)
        logger.info("[Drain] Stopped after %d results (%d errors)", self.drained_count, self.error_count)

    def start(self) -> threading.Thread:
        """Run the drain loop on a daemon thread."""
        if self.running:
            return self._thread
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            args=(self._stop_event,),
            name=f"result-drain-{self.order_manager.queue_index}",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to stop and wait for the thread to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
