"""Tests for the MQTT status publisher."""
from __future__ import annotations

import json
from unittest.mock import Mock, patch

import paho.mqtt.client as mqtt
import pytest

from smart_tap.config import MqttConfig
from smart_tap.device import StorageDevice
from smart_tap.mqtt_client import StatusPublisher, device_id_for


@pytest.fixture
def mqtt_config():
    return MqttConfig(
        host="broker.local",
        port=1883,
        base_topic="smart-tap",
        discovery_topic="homeassistant",
        client_id="tap-host",
        username="tap",
        password="secret",
        qos=1,
        retain=True,
        tls_enabled=False,
        ca_cert=None,
        keepalive=30,
    )


@pytest.fixture
def mock_client():
    with patch("smart_tap.mqtt_client.mqtt.Client") as client_cls:
        client = client_cls.return_value
        client.publish.return_value = Mock(rc=mqtt.MQTT_ERR_SUCCESS)
        yield client


@pytest.fixture
def parsed_device(make_executor, results, text_formats, ata_basic_text):
    device = StorageDevice("/dev/sda", formats=text_formats)
    device.fetch_basic_data_and_parse(make_executor(results.ok(ata_basic_text)))
    return device


class TestStatusPublisher:
    """Publishing device snapshots."""

    def test_client_setup(self, mqtt_config, mock_client):
        """Test credentials and the last will are configured."""
        StatusPublisher(mqtt_config)

        mock_client.username_pw_set.assert_called_once_with("tap", "secret")
        mock_client.will_set.assert_called_once_with(
            "smart-tap/status", payload="offline", qos=1, retain=True
        )
        mock_client.tls_set.assert_not_called()

    def test_connect_publishes_online(self, mqtt_config, mock_client):
        """Test a successful connection marks the publisher online."""
        publisher = StatusPublisher(mqtt_config)

        publisher._on_connect(mock_client, None, {}, 0, None)

        assert publisher.connected is True
        mock_client.publish.assert_called_once_with(
            "smart-tap/status", payload="online", qos=1, retain=True
        )

    def test_failed_connect(self, mqtt_config, mock_client):
        """Test a refused connection stays offline."""
        publisher = StatusPublisher(mqtt_config)

        publisher._on_connect(mock_client, None, {}, 5, None)

        assert publisher.connected is False
        mock_client.publish.assert_not_called()

    def test_publish_snapshot(self, mqtt_config, mock_client, parsed_device):
        """Test snapshots go to the per-device topic."""
        publisher = StatusPublisher(mqtt_config)

        assert publisher.publish_snapshot(parsed_device) is True

        topic, = mock_client.publish.call_args.args
        kwargs = mock_client.publish.call_args.kwargs
        assert topic == "smart-tap/wd-wcc6y0123456"
        payload = json.loads(kwargs["payload"])
        assert payload["serial"] == "WD-WCC6Y0123456"
        assert payload["smart_status"] == "enabled"
        assert kwargs["qos"] == 1
        assert kwargs["retain"] is True

    def test_publish_failure(self, mqtt_config, mock_client, parsed_device):
        """Test a broker error is reported as False."""
        mock_client.publish.return_value = Mock(rc=mqtt.MQTT_ERR_NO_CONN)
        publisher = StatusPublisher(mqtt_config)

        assert publisher.publish_snapshot(parsed_device) is False

    def test_listener_publishes_discovery_once(self, mqtt_config, mock_client, parsed_device):
        """Test device changes publish discovery the first time only."""
        publisher = StatusPublisher(mqtt_config)

        publisher.on_device_changed(parsed_device)
        publisher.on_device_changed(parsed_device)

        topics = [call.args[0] for call in mock_client.publish.call_args_list]
        assert topics == [
            "homeassistant/sensor/wd-wcc6y0123456/smart/config",
            "smart-tap/wd-wcc6y0123456",
            "smart-tap/wd-wcc6y0123456",
        ]
        discovery = json.loads(mock_client.publish.call_args_list[0].kwargs["payload"])
        assert discovery["state_topic"] == "smart-tap/wd-wcc6y0123456"
        assert discovery["device"]["model"] == "WDC WD10EZEX-08WN4A0"

    def test_disconnect(self, mqtt_config, mock_client):
        """Test an online publisher announces going offline."""
        publisher = StatusPublisher(mqtt_config)
        publisher._on_connect(mock_client, None, {}, 0, None)
        mock_client.publish.reset_mock()

        publisher.disconnect()

        mock_client.publish.assert_called_once_with(
            "smart-tap/status", payload="offline", qos=1, retain=True
        )
        mock_client.loop_stop.assert_called_once()
        mock_client.disconnect.assert_called_once()


def test_device_id_without_serial():
    """Test unparsed devices are identified by their device name."""
    assert device_id_for(StorageDevice("/dev/nvme0")) == "nvme0"
