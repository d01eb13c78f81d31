"""
Production Cycle Client - Configuration Module
Controller connection settings and protocol timing constants
"""

import os
from dataclasses import dataclass, field

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

# Controller Configuration
CONTROLLER_URL = os.getenv("CONTROLLER_URL", "http://127.0.0.1")
CONTROLLER_USERNAME = os.getenv("CONTROLLER_USERNAME", "mujin")
CONTROLLER_PASSWORD = os.getenv("CONTROLLER_PASSWORD", "mujin")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10.0"))  # seconds

# Order Queue Configuration
QUEUE_INDEX = int(os.getenv("QUEUE_INDEX", "1"))
BOOTSTRAP_TIMEOUT = float(os.getenv("BOOTSTRAP_TIMEOUT", "5.0"))  # seconds
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "0.05"))  # seconds
ERROR_RETRY_INTERVAL = float(os.getenv("ERROR_RETRY_INTERVAL", "1.0"))  # seconds
QUEUE_FULL_LOG_INTERVAL = float(os.getenv("QUEUE_FULL_LOG_INTERVAL", "5.0"))  # seconds

# MQTT Configuration (result forwarding)
MQTT_BROKER = os.getenv("MQTT_BROKER", "localhost")
MQTT_PORT = int(os.getenv("MQTT_PORT", "1883"))
MQTT_TOPIC_PREFIX = os.getenv("MQTT_TOPIC_PREFIX", "productioncycle")

# Subscription reconnect backoff
SUBSCRIPTION_BACKOFF_MIN_S = 0.5
SUBSCRIPTION_BACKOFF_MAX_S = 10.0


# Controller IO names outside of the order queues
class CycleIO:
    START_PRODUCTION_CYCLE = "startProductionCycle"
    IS_RUNNING_PRODUCTION_CYCLE = "isRunningProductionCycle"


@dataclass
class ClientSettings:
    """Resolved settings for one client process"""
    url: str = CONTROLLER_URL
    username: str = CONTROLLER_USERNAME
    password: str = field(default=CONTROLLER_PASSWORD, repr=False)
    http_timeout: float = HTTP_TIMEOUT
    queue_index: int = QUEUE_INDEX
    bootstrap_timeout: float = BOOTSTRAP_TIMEOUT
    poll_interval: float = POLL_INTERVAL
    error_retry_interval: float = ERROR_RETRY_INTERVAL
    queue_full_log_interval: float = QUEUE_FULL_LOG_INTERVAL
    mqtt_broker: str = MQTT_BROKER
    mqtt_port: int = MQTT_PORT
    mqtt_topic_prefix: str = MQTT_TOPIC_PREFIX

    @classmethod
    def from_env(cls, **overrides) -> "ClientSettings":
        """Build settings from the environment, ignoring ``None`` overrides."""
        settings = cls()
        for name, value in overrides.items():
            if value is None:
                continue
            if not hasattr(settings, name):
                raise ValueError(f"Unknown setting: {name}")
            setattr(settings, name, value)
        return settings
