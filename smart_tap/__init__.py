"""smart-tap SMART data reader."""

from smart_tap.config import AppConfig, load_config
from smart_tap.detected_type import DetectedType
from smart_tap.device import StorageDevice
from smart_tap.executor import SmartctlExecutor
from smart_tap.mqtt_client import StatusPublisher
from smart_tap.schema import validate_snapshot

__all__ = [
    "AppConfig",
    "DetectedType",
    "SmartctlExecutor",
    "StatusPublisher",
    "StorageDevice",
    "load_config",
    "validate_snapshot",
]
