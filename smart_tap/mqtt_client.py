from __future__ import annotations

import json
import logging
import re
import ssl
from typing import TYPE_CHECKING, Any

import paho.mqtt.client as mqtt

from smart_tap.config import MqttConfig
from smart_tap.schema import validate_snapshot

if TYPE_CHECKING:
    from smart_tap.device import StorageDevice

_TOPIC_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_-]+")


def device_id_for(device: StorageDevice) -> str:
    """Stable topic component: serial number when known, device name otherwise."""
    raw = device.serial_number or device.device_base or device.virtual_filename or "unknown"
    return _TOPIC_UNSAFE_RE.sub("_", raw).strip("_").lower() or "unknown"


class StatusPublisher:
    """Publishes device snapshots to ``{base_topic}/{device_id}``.

    Register ``on_device_changed`` as a device listener to publish on
    every state change.
    """

    def __init__(self, config: MqttConfig) -> None:
        self.config = config
        self.client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv311,
        )
        self.logger = logging.getLogger(self.__class__.__name__)
        self._connected = False
        self._discovered: set[str] = set()

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        if config.username:
            self.client.username_pw_set(config.username, config.password)
        if config.tls_enabled:
            self.client.tls_set(
                ca_certs=config.ca_cert,
                cert_reqs=ssl.CERT_REQUIRED,
            )

        # Last Will and Testament for availability
        self.client.will_set(
            self._availability_topic,
            payload="offline",
            qos=1,
            retain=True,
        )
        self.client.reconnect_delay_set(min_delay=1, max_delay=120)

    @property
    def _availability_topic(self) -> str:
        return f"{self.config.base_topic}/status"

    @property
    def connected(self) -> bool:
        return self._connected

    def state_topic(self, device: StorageDevice) -> str:
        return f"{self.config.base_topic}/{device_id_for(device)}"

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if reason_code == 0:
            self._connected = True
            self.logger.info(
                "Connected to MQTT broker %s:%s", self.config.host, self.config.port
            )
            self.client.publish(
                self._availability_topic,
                payload="online",
                qos=1,
                retain=True,
            )
        else:
            self._connected = False
            self.logger.error("Failed to connect to MQTT broker, reason: %s", reason_code)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        self._connected = False
        if reason_code == 0:
            self.logger.info("Disconnected from MQTT broker (clean)")
        else:
            self.logger.warning(
                "Unexpectedly disconnected from MQTT broker, reason: %s. "
                "Will attempt to reconnect.",
                reason_code,
            )

    def connect(self) -> None:
        self.logger.info(
            "Connecting to MQTT broker %s:%s", self.config.host, self.config.port
        )
        self.client.connect(
            self.config.host,
            self.config.port,
            keepalive=self.config.keepalive,
        )
        # Background network loop handles reconnection
        self.client.loop_start()

    def disconnect(self) -> None:
        if self._connected:
            self.client.publish(
                self._availability_topic,
                payload="offline",
                qos=1,
                retain=True,
            )
        self.client.loop_stop()
        self.client.disconnect()
        self.logger.info("Disconnected from MQTT broker")

    def publish_snapshot(self, device: StorageDevice) -> bool:
        payload = device.snapshot()
        schema_errors = validate_snapshot(payload)
        if schema_errors:
            self.logger.warning("Schema validation failed with %s errors.", len(schema_errors))
            self.logger.debug("Schema errors: %s", schema_errors)
        if not self._connected:
            self.logger.warning("Not connected to MQTT broker, message may be queued")

        topic = self.state_topic(device)
        self.logger.debug("Publishing %s snapshot to %s", device.device_with_type, topic)
        result = self.client.publish(
            topic,
            payload=json.dumps(payload),
            qos=self.config.qos,
            retain=self.config.retain,
        )
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.error("Failed to publish message, error code: %s", result.rc)
            return False
        return True

    def publish_discovery(self, device: StorageDevice) -> None:
        device_id = device_id_for(device)
        name = device.model_name or device.device_with_type
        discovery_payload = {
            "name": f"{name} SMART",
            "unique_id": f"{self.config.client_id}_{device_id}_smart",
            "state_topic": self.state_topic(device),
            "value_template": "{{ value_json.health.readable if value_json.health else 'unknown' }}",
            "json_attributes_topic": self.state_topic(device),
            "availability_topic": self._availability_topic,
            "payload_available": "online",
            "payload_not_available": "offline",
            "device": {
                "identifiers": [device_id],
                "name": name,
                "model": device.model_name,
                "manufacturer": device.family_name,
                "serial_number": device.serial_number,
            },
        }
        topic = f"{self.config.discovery_topic}/sensor/{device_id}/smart/config"
        self.logger.debug("Publishing Home Assistant discovery to %s", topic)
        self.client.publish(
            topic,
            payload=json.dumps(discovery_payload),
            qos=self.config.qos,
            retain=True,
        )
        self._discovered.add(device_id)

    def on_device_changed(self, device: StorageDevice) -> None:
        if device_id_for(device) not in self._discovered:
            self.publish_discovery(device)
        self.publish_snapshot(device)
