"""
Production Cycle Client - Location Container Handling

The controller asks the client to move containers in and out of its pick and
place locations. The client answers by setting the location's container id and
hasContainer IO once the (physical) move is done.

IO names for location n (controller-configured, these are the defaults):
    location{n}ContainerId, location{n}HasContainer
    moveInLocation{n}Container, moveOutLocation{n}Container
"""

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from order_queue.errors import ProductionCycleError
from utils.config import ERROR_RETRY_INTERVAL, POLL_INTERVAL
from utils.logging_config import get_logger

if TYPE_CHECKING:
    from controller_client.channel import RemoteStateChannel

logger = get_logger("production_cycle.location")


@dataclass
class LocationConfig:
    """IO wiring of one controller location."""
    location_name: str
    container_id: str
    container_id_io_name: str
    has_container_io_name: str
    move_in_io_name: str
    move_out_io_name: str

    @classmethod
    def for_location(cls, location_index: int, container_id: str) -> "LocationConfig":
        return cls(
            location_name=f"location{location_index}",
            container_id=container_id,
            container_id_io_name=f"location{location_index}ContainerId",
            has_container_io_name=f"location{location_index}HasContainer",
            move_in_io_name=f"moveInLocation{location_index}Container",
            move_out_io_name=f"moveOutLocation{location_index}Container",
        )


class LocationMoveHandler:
    """
    Answers move-in and move-out requests for one location.

    Attributes
    ----------
    has_container : bool
        Whether this client last reported a container at the location.
    """

    def __init__(
        self,
        channel: "RemoteStateChannel",
        config: LocationConfig,
        poll_interval: float = POLL_INTERVAL,
        error_interval: float = ERROR_RETRY_INTERVAL,
    ):
        self.channel = channel
        self.config = config
        self.poll_interval = poll_interval
        self.error_interval = error_interval
        reported = channel.read_reported_snapshot()
        self.has_container = bool(reported.get(config.has_container_io_name, False))

    def step(self) -> Optional[str]:
        """
        Handle the current move request, if any.

        Returns
        -------
        Optional[str]
            ``"moveIn"`` or ``"moveOut"`` when a move was acknowledged, else None.
        """
        reported = self.channel.read_reported_snapshot()
        is_move_in = bool(reported.get(self.config.move_in_io_name, False))
        is_move_out = bool(reported.get(self.config.move_out_io_name, False))

        io_name_values: Dict[str, Any] = {}
        if is_move_in and not self.has_container:
            io_name_values[self.config.container_id_io_name] = self.config.container_id
            io_name_values[self.config.has_container_io_name] = True
            action = "moveIn"
        elif is_move_out and self.has_container:
            io_name_values[self.config.container_id_io_name] = ""
            io_name_values[self.config.has_container_io_name] = False
            action = "moveOut"
        else:
            return None

        self.channel.write_variables(io_name_values)
        self.has_container = action == "moveIn"
        if self.has_container:
            logger.info("Moved in container %s to location %s",
                        self.config.container_id, self.config.location_name)
        else:
            logger.info("Moved out container %s of location %s",
                        self.config.container_id, self.config.location_name)
        return action

    def run(self, stop_event: threading.Event) -> None:
        """Handle move requests until ``stop_event`` is set."""
        while not stop_event.is_set():
            wait = self.poll_interval
            try:
                self.step()
            except ProductionCycleError as e:
                logger.warning("Failed to handle location move for %s: %s", self.config.location_name, e)
                wait = self.error_interval
            stop_event.wait(wait)
