"""
Production Cycle Client - Remote State Channel Contract

The order queue protocol only talks to the controller through these four
calls. ``GraphClient`` is the production implementation; tests use an
in-memory controller with the same shape.
"""

from typing import Any, Mapping, Protocol


class RemoteStateChannel(Protocol):
    """Named-variable access to the controller IO state."""

    def read_received_snapshot(self) -> Mapping[str, Any]:
        """Latest IO values the controller acknowledged receiving (cached)."""
        ...

    def read_reported_snapshot(self) -> Mapping[str, Any]:
        """Latest IO values the controller reports about itself (cached)."""
        ...

    def read_variable(self, name: str) -> Any:
        """Fetch one IO variable with a round trip. Raises ``RemoteError``."""
        ...

    def write_variables(self, variables: Mapping[str, Any]) -> None:
        """Set several IO variables in one request. Raises ``RemoteError``."""
        ...
