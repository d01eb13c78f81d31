#!/usr/bin/env python3
"""
Production Cycle Client - Result Drain Loop and Sink Tests

Usage:
    python -m pytest tests/test_drain.py
"""

import json
import os
import sys
import threading
import time
import unittest
from unittest import mock

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import paho.mqtt.client as mqtt

from order_queue.drain import ResultDrainLoop
from order_queue.order_manager import OrderManager
from order_queue.sinks import LoggingResultSink, MqttResultSink, QueueResultSink
from tests.fake_controller import FakeController

POLL = 0.002


def make_loop(controller, sink):
    manager = OrderManager(controller, queue_index=1, poll_interval=POLL)
    manager.initialize_order_pointers(timeout=1.0)
    return ResultDrainLoop(manager, sink, poll_interval=POLL, error_interval=POLL)


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(POLL)
    return predicate()


class TestResultDrainLoop(unittest.TestCase):

    def test_drain_once_on_empty_queue(self):
        sink = QueueResultSink()
        loop = make_loop(FakeController(), sink)
        self.assertFalse(loop.drain_once())
        self.assertTrue(sink.queue.empty())

    def test_drains_results_in_order(self):
        controller = FakeController(queue_length=5)
        sink = QueueResultSink()
        loop = make_loop(controller, sink)
        for n in range(4):
            controller.produce_result({"resultIndex": n})

        loop.start()
        try:
            received = [sink.get(timeout=2.0) for _ in range(4)]
        finally:
            loop.stop(timeout=2.0)

        self.assertEqual(received, [{"resultIndex": n} for n in range(4)])
        self.assertEqual(loop.drained_count, 4)
        self.assertFalse(loop.running)

    def test_keeps_draining_after_remote_errors(self):
        """A failed dequeue is logged and the next attempt still runs."""
        controller = FakeController(queue_length=4)
        sink = QueueResultSink()
        loop = make_loop(controller, sink)
        controller.produce_result({"resultCode": 1})
        controller.fail_reads = 2

        loop.start()
        try:
            self.assertEqual(sink.get(timeout=2.0), {"resultCode": 1})
        finally:
            loop.stop(timeout=2.0)
        self.assertEqual(loop.error_count, 2)

    def test_results_produced_while_running_are_drained(self):
        controller = FakeController(queue_length=3)
        sink = QueueResultSink()
        loop = make_loop(controller, sink)
        loop.start()
        try:
            # more results than slots, so the read pointer must wrap
            for n in range(5):
                self.assertTrue(wait_until(
                    lambda: controller.received["location1OrderResultReadPointer"]
                    == controller.received["location1OrderResultWritePointer"]
                ))
                controller.produce_result({"resultIndex": n})
            received = [sink.get(timeout=2.0) for _ in range(5)]
        finally:
            loop.stop(timeout=2.0)
        self.assertEqual(received, [{"resultIndex": n} for n in range(5)])

    def test_sink_failure_retries_same_result(self):
        controller = FakeController(queue_length=4)
        delivered = []
        calls = {"count": 0}

        def flaky_sink(result_entry):
            calls["count"] += 1
            if calls["count"] == 1:
                raise ConnectionError("sink unavailable")
            delivered.append(result_entry)

        loop = make_loop(controller, flaky_sink)
        controller.produce_result({"resultCode": 1})
        controller.produce_result({"resultCode": 2})

        with self.assertRaises(ConnectionError):
            loop.drain_once()
        self.assertTrue(loop.drain_once())
        self.assertTrue(loop.drain_once())
        self.assertFalse(loop.drain_once())
        self.assertEqual(delivered, [{"resultCode": 1}, {"resultCode": 2}])

    def test_logs_which_step_failed(self):
        controller = FakeController(queue_length=4)
        loop = make_loop(controller, QueueResultSink())
        stop_event = threading.Event()

        def fail_then_stop():
            stop_event.set()
            raise TypeError("unexpected controller response")

        with mock.patch.object(loop.order_manager, "dequeue_order_result", side_effect=fail_then_stop):
            with self.assertLogs("order_queue.drain", level="ERROR") as logs:
                loop.run(stop_event)
        self.assertIn("Failed to dequeue order result", logs.output[0])
        self.assertEqual(loop.error_count, 1)

        def failing_sink(result_entry):
            stop_event.set()
            raise ConnectionError("sink unavailable")

        controller.produce_result({"resultCode": 1})
        loop.sink = failing_sink
        stop_event.clear()
        with self.assertLogs("order_queue.drain", level="ERROR") as logs:
            loop.run(stop_event)
        self.assertIn("Result sink failed", logs.output[0])

    def test_run_returns_when_stop_event_set(self):
        loop = make_loop(FakeController(), QueueResultSink())
        stop_event = threading.Event()
        thread = threading.Thread(target=loop.run, args=(stop_event,))
        thread.start()
        stop_event.set()
        thread.join(timeout=2.0)
        self.assertFalse(thread.is_alive())


class TestSinks(unittest.TestCase):

    def test_logging_sink(self):
        with self.assertLogs("order_queue.sinks", level="INFO") as logs:
            LoggingResultSink()({"resultCode": 0})
        self.assertIn("resultCode", logs.output[0])

    def test_mqtt_sink_publishes_json(self):
        client = mock.Mock()
        client.publish.return_value = mock.Mock(rc=mqtt.MQTT_ERR_SUCCESS)
        sink = MqttResultSink(2, client=client, topic_prefix="plant")
        sink({"resultCode": 0, "orderUniqueId": "order1"})

        topic, payload = client.publish.call_args[0]
        self.assertEqual(topic, "plant/queue/2/result")
        self.assertEqual(json.loads(payload), {"resultCode": 0, "orderUniqueId": "order1"})
        self.assertEqual(client.publish.call_args[1], {"qos": 1})

    def test_mqtt_sink_raises_on_publish_failure(self):
        client = mock.Mock()
        client.publish.return_value = mock.Mock(rc=mqtt.MQTT_ERR_NO_CONN)
        sink = MqttResultSink(1, client=client)
        with self.assertRaises(ConnectionError):
            sink({"resultCode": 0})

    def test_mqtt_sink_does_not_close_supplied_client(self):
        client = mock.Mock()
        MqttResultSink(1, client=client).close()
        client.disconnect.assert_not_called()


if __name__ == "__main__":
    unittest.main()
