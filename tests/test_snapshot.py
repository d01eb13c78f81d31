#!/usr/bin/env python3
"""
Production Cycle Client - IO Snapshot Cache Tests

Usage:
    python -m pytest tests/test_snapshot.py
"""

import os
import sys
import threading
import unittest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from controller_client.messages import RobotBridgesState
from controller_client.snapshot import SnapshotCache, io_pairs_to_map


def state(received=None, sent=None) -> dict:
    return {
        "receivediovalues": [[k, v] for k, v in (received or {}).items()],
        "sentiovalues": [[k, v] for k, v in (sent or {}).items()],
    }


class TestSnapshotCache(unittest.TestCase):

    def test_empty_cache(self):
        cache = SnapshotCache()
        self.assertFalse(cache.has_snapshot)
        self.assertEqual(dict(cache.received()), {})
        self.assertEqual(dict(cache.reported()), {})

    def test_replace_converts_io_pairs(self):
        cache = SnapshotCache()
        cache.replace(state(
            received={"location1OrderReadPointer": 2},
            sent={"isRunningProductionCycle": True},
        ))
        self.assertTrue(cache.has_snapshot)
        self.assertEqual(cache.received()["location1OrderReadPointer"], 2)
        self.assertTrue(cache.reported()["isRunningProductionCycle"])

    def test_replace_accepts_model(self):
        cache = SnapshotCache()
        snapshot = cache.replace(RobotBridgesState(receivediovalues=[["a", 1]], sentiovalues=None))
        self.assertEqual(snapshot.sequence, 1)
        self.assertEqual(dict(snapshot.received), {"a": 1})
        self.assertEqual(dict(snapshot.reported), {})

    def test_snapshot_is_read_only(self):
        cache = SnapshotCache()
        cache.replace(state(received={"a": 1}))
        with self.assertRaises(TypeError):
            cache.received()["a"] = 2

    def test_replace_is_wholesale(self):
        """Values missing from the new state are gone; earlier views are unchanged."""
        cache = SnapshotCache()
        cache.replace(state(received={"a": 1, "b": 2}))
        before = cache.received()
        cache.replace(state(received={"a": 3}))
        self.assertEqual(dict(cache.received()), {"a": 3})
        self.assertEqual(dict(before), {"a": 1, "b": 2})
        self.assertEqual(cache.snapshot().sequence, 2)

    def test_malformed_pairs_are_skipped_with_warning(self):
        with self.assertLogs("controller_client.snapshot", level="WARNING"):
            result = io_pairs_to_map([["a", 1], ["b"], [3, 4], "c"])
        self.assertEqual(dict(result), {"a": 1})

    def test_wait_for_update(self):
        cache = SnapshotCache()
        self.assertFalse(cache.wait_for_update(timeout=0.01))
        timer = threading.Timer(0.02, cache.replace, args=(state(received={"a": 1}),))
        timer.start()
        try:
            self.assertTrue(cache.wait_for_update(timeout=2.0))
        finally:
            timer.cancel()
        self.assertTrue(cache.wait_for_update(timeout=0.01, after_sequence=0))

    def test_readers_never_see_partial_snapshot(self):
        cache = SnapshotCache()
        cache.replace(state(received={"a": 0, "b": 0}))
        stop = threading.Event()
        mismatches = []

        def writer():
            n = 0
            while not stop.is_set():
                n += 1
                cache.replace(state(received={"a": n, "b": n}))

        thread = threading.Thread(target=writer)
        thread.start()
        try:
            for _ in range(2000):
                received = cache.received()
                if received["a"] != received["b"]:
                    mismatches.append(dict(received))
        finally:
            stop.set()
            thread.join()
        self.assertEqual(mismatches, [])


if __name__ == "__main__":
    unittest.main()
