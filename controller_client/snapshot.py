"""
Production Cycle Client - IO Snapshot Cache

The subscription thread replaces the cached controller state wholesale on each
update while polling loops read it from other threads. Readers always get a
complete, read-only snapshot.
"""

import threading
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from utils.logging_config import get_logger

from .messages import RobotBridgesState

logger = get_logger("controller_client.snapshot")

_EMPTY = MappingProxyType({})


def io_pairs_to_map(pairs: Iterable) -> Mapping[str, Any]:
    """Convert ``[[ioName, ioValue], ...]`` into a read-only mapping."""
    result = {}
    for pair in pairs:
        if not isinstance(pair, (list, tuple)) or len(pair) < 2 or not isinstance(pair[0], str):
            logger.warning("[Snapshot] Ignoring malformed IO value pair: %r", pair)
            continue
        result[pair[0]] = pair[1]
    return MappingProxyType(result)


@dataclass(frozen=True)
class IOSnapshot:
    """One complete copy of the controller IO state."""
    received: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    reported: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    sequence: int = 0
    updated_at: Optional[float] = None
    raw: Mapping[str, Any] = field(default_factory=lambda: _EMPTY, repr=False)


class SnapshotCache:
    """
    Thread-safe holder of the latest ``RobotBridgesState``.

    ``replace`` is the only writer; ``received``/``reported`` return the
    mappings of whichever snapshot was current at call time.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._updated = threading.Condition(self._lock)
        self._snapshot = IOSnapshot()

    def replace(self, state: Union[RobotBridgesState, Mapping[str, Any]]) -> IOSnapshot:
        """Swap in a new controller state and wake any waiters."""
        if not isinstance(state, RobotBridgesState):
            state = RobotBridgesState.model_validate(state)
        received = io_pairs_to_map(state.receivediovalues)
        reported = io_pairs_to_map(state.sentiovalues)
        with self._updated:
            snapshot = IOSnapshot(
                received=received,
                reported=reported,
                sequence=self._snapshot.sequence + 1,
                updated_at=time.time(),
                raw=MappingProxyType(state.model_dump()),
            )
            self._snapshot = snapshot
            self._updated.notify_all()
        return snapshot

    def snapshot(self) -> IOSnapshot:
        with self._lock:
            return self._snapshot

    def received(self) -> Mapping[str, Any]:
        return self.snapshot().received

    def reported(self) -> Mapping[str, Any]:
        return self.snapshot().reported

    @property
    def has_snapshot(self) -> bool:
        return self.snapshot().sequence > 0

    def wait_for_update(self, timeout: Optional[float] = None, after_sequence: Optional[int] = None) -> bool:
        """
        Block until a snapshot newer than ``after_sequence`` arrives.

        Parameters
        ----------
        timeout : float, optional
            Maximum wait in seconds; ``None`` waits forever.
        after_sequence : int, optional
            Sequence number to wait past. Defaults to the current one.

        Returns
        -------
        bool
            True if a newer snapshot is available, False on timeout.
        """
        with self._updated:
            if after_sequence is None:
                after_sequence = self._snapshot.sequence
            return self._updated.wait_for(
                lambda: self._snapshot.sequence > after_sequence, timeout=timeout
            )
