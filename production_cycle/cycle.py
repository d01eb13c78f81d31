"""
Production Cycle Client - Production Cycle Start
"""

import threading
import time
from typing import TYPE_CHECKING, Optional

from order_queue.errors import CycleStartTimeout, OperationCancelled, ProductionCycleError
from utils.config import POLL_INTERVAL, CycleIO
from utils.logging_config import get_logger

if TYPE_CHECKING:
    from controller_client.channel import RemoteStateChannel

logger = get_logger("production_cycle")


def is_production_cycle_running(channel: "RemoteStateChannel") -> bool:
    return bool(channel.read_reported_snapshot().get(CycleIO.IS_RUNNING_PRODUCTION_CYCLE, False))


def start_production_cycle(
    channel: "RemoteStateChannel",
    timeout: Optional[float] = None,
    poll_interval: float = POLL_INTERVAL,
    stop_event: Optional[threading.Event] = None,
) -> None:
    """
    Start the production cycle and wait until the controller reports it running.

    The start trigger is raised only if the cycle is not already running, and
    is always lowered again, whether the cycle started or the wait gave up.

    Parameters
    ----------
    timeout : float, optional
        Seconds to wait for ``isRunningProductionCycle``; None waits forever.
    stop_event : threading.Event, optional
        Cancels the wait.

    Raises
    ------
    CycleStartTimeout
        If the cycle is not running when the timeout elapses.
    OperationCancelled
        If ``stop_event`` is set before the cycle runs.
    """
    start_time = time.monotonic()
    if is_production_cycle_running(channel):
        # set trigger off
        channel.write_variables({CycleIO.START_PRODUCTION_CYCLE: False})
        logger.info("Production cycle already running")
        return

    channel.write_variables({CycleIO.START_PRODUCTION_CYCLE: True})
    try:
        while not is_production_cycle_running(channel):
            if stop_event is not None and stop_event.is_set():
                raise OperationCancelled("Cancelled while waiting for production cycle to start")
            if timeout is not None and time.monotonic() - start_time > timeout:
                raise CycleStartTimeout(f"Production cycle did not start within {timeout}s")
            if stop_event is not None:
                stop_event.wait(poll_interval)
            else:
                time.sleep(poll_interval)
    except BaseException:
        _lower_start_trigger(channel)
        raise

    # set trigger off
    channel.write_variables({CycleIO.START_PRODUCTION_CYCLE: False})
    logger.info("Started production cycle")


def _lower_start_trigger(channel: "RemoteStateChannel") -> None:
    """Lower the start trigger after a failed start without masking the failure."""
    try:
        channel.write_variables({CycleIO.START_PRODUCTION_CYCLE: False})
    except ProductionCycleError as e:
        logger.warning("Failed to lower production cycle start trigger: %s", e)
