#!/usr/bin/env python3
"""
Production Cycle Client - Production Cycle and Location Handling Tests

Usage:
    python -m pytest tests/test_production_cycle.py
"""

import os
import sys
import threading
import unittest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from order_queue.errors import CycleStartTimeout, OperationCancelled
from production_cycle.cycle import is_production_cycle_running, start_production_cycle
from production_cycle.location import LocationConfig, LocationMoveHandler
from tests.fake_controller import FakeController

POLL = 0.002


class TestStartProductionCycle(unittest.TestCase):

    def test_raises_trigger_until_running_then_lowers_it(self):
        controller = FakeController()

        def controller_starts_cycle(variables):
            if variables.get("startProductionCycle"):
                controller.reported["isRunningProductionCycle"] = True

        controller.on_write = controller_starts_cycle
        start_production_cycle(controller, timeout=1.0, poll_interval=POLL)
        self.assertEqual(controller.writes, [
            {"startProductionCycle": True},
            {"startProductionCycle": False},
        ])
        self.assertTrue(is_production_cycle_running(controller))

    def test_already_running_only_lowers_trigger(self):
        controller = FakeController()
        controller.reported["isRunningProductionCycle"] = True
        start_production_cycle(controller, poll_interval=POLL)
        self.assertEqual(controller.writes, [{"startProductionCycle": False}])

    def test_timeout_lowers_trigger(self):
        controller = FakeController()
        with self.assertRaises(CycleStartTimeout):
            start_production_cycle(controller, timeout=0.02, poll_interval=POLL)
        self.assertEqual(controller.writes, [
            {"startProductionCycle": True},
            {"startProductionCycle": False},
        ])

    def test_stop_event_cancels_and_lowers_trigger(self):
        controller = FakeController()
        stop_event = threading.Event()
        timer = threading.Timer(0.02, stop_event.set)
        timer.start()
        try:
            with self.assertRaises(OperationCancelled):
                start_production_cycle(controller, stop_event=stop_event, poll_interval=POLL)
        finally:
            timer.cancel()
        self.assertEqual(controller.writes[0], {"startProductionCycle": True})
        self.assertEqual(controller.writes[-1], {"startProductionCycle": False})

    def test_failed_lowering_keeps_timeout_error(self):
        controller = FakeController()

        def fail_next_write(variables):
            if variables.get("startProductionCycle"):
                controller.fail_writes = 1

        controller.on_write = fail_next_write
        with self.assertRaises(CycleStartTimeout):
            start_production_cycle(controller, timeout=0.02, poll_interval=POLL)
        self.assertEqual(controller.writes, [{"startProductionCycle": True}])


class TestLocationMoveHandler(unittest.TestCase):

    def setUp(self):
        self.controller = FakeController()
        self.config = LocationConfig.for_location(1, "source0001")

    def test_config_io_names(self):
        self.assertEqual(self.config.location_name, "location1")
        self.assertEqual(self.config.container_id_io_name, "location1ContainerId")
        self.assertEqual(self.config.has_container_io_name, "location1HasContainer")
        self.assertEqual(self.config.move_in_io_name, "moveInLocation1Container")
        self.assertEqual(self.config.move_out_io_name, "moveOutLocation1Container")

    def test_no_request_does_nothing(self):
        handler = LocationMoveHandler(self.controller, self.config)
        self.assertIsNone(handler.step())
        self.assertEqual(self.controller.writes, [])

    def test_move_in_then_move_out(self):
        handler = LocationMoveHandler(self.controller, self.config)
        self.controller.reported["moveInLocation1Container"] = True
        self.assertEqual(handler.step(), "moveIn")
        self.assertTrue(handler.has_container)
        self.assertEqual(self.controller.writes[-1], {
            "location1ContainerId": "source0001",
            "location1HasContainer": True,
        })

        # request still raised, container already in
        self.assertIsNone(handler.step())
        self.assertEqual(len(self.controller.writes), 1)

        self.controller.reported["moveInLocation1Container"] = False
        self.controller.reported["moveOutLocation1Container"] = True
        self.assertEqual(handler.step(), "moveOut")
        self.assertFalse(handler.has_container)
        self.assertEqual(self.controller.writes[-1], {
            "location1ContainerId": "",
            "location1HasContainer": False,
        })

    def test_initial_state_from_controller(self):
        self.controller.reported["location1HasContainer"] = True
        handler = LocationMoveHandler(self.controller, self.config)
        self.assertTrue(handler.has_container)

    def test_run_retries_after_failed_write(self):
        handler = LocationMoveHandler(self.controller, self.config)
        self.controller.reported["moveInLocation1Container"] = True
        self.controller.fail_writes = 1
        with self.assertLogs("production_cycle.location", level="WARNING"):
            stop_event = threading.Event()
            # failed write, retry, then stop
            timer = threading.Timer(0.05, stop_event.set)
            timer.start()
            try:
                handler.error_interval = POLL
                handler.poll_interval = POLL
                handler.run(stop_event)
            finally:
                timer.cancel()
        # the retry after the failure succeeds
        self.assertTrue(handler.has_container)
        self.assertEqual(len(self.controller.writes), 1)


if __name__ == "__main__":
    unittest.main()
