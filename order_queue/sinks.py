"""
Production Cycle Client - Order Result Sinks

Destinations for results pulled off the result queue by ``ResultDrainLoop``.
Any callable taking one result dict works as a sink; these cover the common
cases of logging, handing results to another thread, and MQTT forwarding.
"""

import json
import queue
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from utils.config import MQTT_BROKER, MQTT_PORT, MQTT_TOPIC_PREFIX
from utils.logging_config import get_logger

logger = get_logger("order_queue.sinks")


class LoggingResultSink:
    """Log every result at INFO level."""

    def __call__(self, result_entry: Dict[str, Any]) -> None:
        logger.info("Read order result: %s", result_entry)


class QueueResultSink:
    """Put results on a ``queue.Queue`` for another thread to consume."""

    def __init__(self, result_queue: Optional[queue.Queue] = None):
        self.queue = result_queue if result_queue is not None else queue.Queue()

    def __call__(self, result_entry: Dict[str, Any]) -> None:
        self.queue.put(result_entry)

    def get(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self.queue.get(timeout=timeout)


class MqttResultSink:
    """
    Publish results as JSON on ``{prefix}/queue/{queue_index}/result``.

    Parameters
    ----------
    queue_index : int
        Queue the results come from, used in the topic.
    client : mqtt.Client, optional
        Already connected client. When omitted, ``connect()`` creates one.
    """

    def __init__(
        self,
        queue_index: int,
        client: Optional[mqtt.Client] = None,
        broker: str = MQTT_BROKER,
        port: int = MQTT_PORT,
        topic_prefix: str = MQTT_TOPIC_PREFIX,
        qos: int = 1,
    ):
        self.topic = f"{topic_prefix}/queue/{queue_index}/result"
        self.client = client
        self.broker = broker
        self.port = port
        self.qos = qos
        self._owns_client = client is None

    def connect(self) -> None:
        """Create and connect an MQTT client if none was supplied."""
        if self.client is not None:
            return
        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id="production_cycle_results")
        self.client.connect(self.broker, self.port, 60)
        self.client.loop_start()
        logger.info("[MQTT] Connected to MQTT broker at %s:%s", self.broker, self.port)

    def __call__(self, result_entry: Dict[str, Any]) -> None:
        if self.client is None:
            self.connect()
        info = self.client.publish(self.topic, json.dumps(result_entry), qos=self.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise ConnectionError(f"MQTT publish to {self.topic} failed with code {info.rc}")
        logger.debug("[MQTT] Published order result to %s", self.topic)

    def close(self) -> None:
        if self.client is not None and self._owns_client:
            try:
                self.client.loop_stop()
                self.client.disconnect()
            finally:
                self.client = None
