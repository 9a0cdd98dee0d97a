"""Tests for the SMART and automatic offline data collection switches."""
from __future__ import annotations

import pytest

from smart_tap import errors
from smart_tap.detected_type import DetectedType
from smart_tap.device import StorageDevice
from smart_tap.errors import (
    CannotExecuteOnVirtualError,
    CommandFailedError,
    CommandUnknownError,
)

SMART_ENABLED_OUTPUT = """\
smartctl 7.4 2023-08-01 r5530 [x86_64-linux-6.5.0-21-generic] (local build)

=== START OF ENABLE/DISABLE COMMANDS SECTION ===
SMART Enabled.
SMART Attribute Autosave Enabled.
"""

SMART_DISABLED_OUTPUT = """\
smartctl 7.4 2023-08-01 r5530 [x86_64-linux-6.5.0-21-generic] (local build)

=== START OF ENABLE/DISABLE COMMANDS SECTION ===
SMART Disabled. Use option -s with argument 'on' to enable it.
(override with '-T permissive' option)
"""

MANDATORY_FAILED_OUTPUT = """\
smartctl 7.4 2023-08-01 r5530 [x86_64-linux-6.5.0-21-generic] (local build)

A mandatory SMART command failed: exiting. To continue, add one or more '-T permissive' options.
"""

AODC_ENABLED_OUTPUT = """\
=== START OF ENABLE/DISABLE COMMANDS SECTION ===
SMART Automatic Offline Testing Enabled every four hours.
"""

AODC_DISABLED_OUTPUT = """\
=== START OF ENABLE/DISABLE COMMANDS SECTION ===
SMART Automatic Offline Testing Disabled.
"""


@pytest.fixture
def ata_device():
    device = StorageDevice("/dev/sda")
    device.detected_type = DetectedType.ATA_HDD
    return device


class TestSmartToggle:
    """SMART on/off."""

    def test_enable_ata(self, ata_device, make_executor, results):
        """Test enabling SMART on ATA also enables attribute autosave."""
        executor = make_executor(results.ok(SMART_ENABLED_OUTPUT))

        ata_device.set_smart_enabled(True, executor)

        assert executor.calls == [("/dev/sda", ["--smart=on", "--saveauto=on"])]

    def test_enable_nvme(self, make_executor, results):
        """Test NVMe devices only get the plain switch."""
        device = StorageDevice("/dev/nvme0")
        device.detected_type = DetectedType.NVME
        executor = make_executor(results.ok(SMART_ENABLED_OUTPUT))

        device.set_smart_enabled(True, executor)

        assert executor.calls[0][1] == ["--smart=on"]

    def test_disable(self, ata_device, make_executor, results):
        """Test disabling SMART."""
        executor = make_executor(results.ok(SMART_DISABLED_OUTPUT))

        ata_device.set_smart_enabled(False, executor)

        assert executor.calls[0][1] == ["--smart=off"]

    def test_mandatory_command_failed(self, ata_device, make_executor, results):
        """Test the drive refusing the command is reported as CommandFailedError."""
        executor = make_executor(results.ok(MANDATORY_FAILED_OUTPUT))

        with pytest.raises(CommandFailedError):
            ata_device.set_smart_enabled(True, executor)

    def test_unrecognized_output(self, ata_device, make_executor, results):
        """Test output without any known confirmation raises CommandUnknownError."""
        executor = make_executor(results.ok("smartctl 7.4\nsomething else"))

        with pytest.raises(CommandUnknownError):
            ata_device.set_smart_enabled(True, executor)

    def test_refused_while_testing(self, ata_device, make_executor):
        """Test toggling is refused during a self-test."""
        executor = make_executor()
        ata_device.set_test_is_active(True)

        with pytest.raises(errors.TestRunningError):
            ata_device.set_smart_enabled(True, executor)

        assert executor.calls == []

    def test_virtual_device(self, make_executor):
        """Test virtual devices cannot be toggled."""
        device = StorageDevice.virtual("saved.txt", "smartctl 7.4")

        with pytest.raises(CannotExecuteOnVirtualError):
            device.set_smart_enabled(True, make_executor())


class TestAodcToggle:
    """Automatic offline data collection on/off."""

    def test_enable(self, ata_device, make_executor, results):
        """Test enabling automatic offline data collection."""
        executor = make_executor(results.ok(AODC_ENABLED_OUTPUT))

        ata_device.set_aodc_enabled(True, executor)

        assert executor.calls[0][1] == ["--offlineauto=on"]

    def test_disable(self, ata_device, make_executor, results):
        """Test disabling automatic offline data collection."""
        executor = make_executor(results.ok(AODC_DISABLED_OUTPUT))

        ata_device.set_aodc_enabled(False, executor)

        assert executor.calls[0][1] == ["--offlineauto=off"]

    def test_mandatory_command_failed(self, ata_device, make_executor, results):
        """Test a failed mandatory command during the toggle."""
        executor = make_executor(results.ok(MANDATORY_FAILED_OUTPUT))

        with pytest.raises(CommandFailedError):
            ata_device.set_aodc_enabled(True, executor)

    def test_smart_confirmation_is_not_enough(self, ata_device, make_executor, results):
        """Test the SMART toggle confirmation does not count for AODC."""
        executor = make_executor(results.ok(SMART_ENABLED_OUTPUT))

        with pytest.raises(CommandUnknownError):
            ata_device.set_aodc_enabled(True, executor)

    def test_refused_while_testing(self, ata_device, make_executor):
        """Test the switch is refused during a self-test."""
        executor = make_executor()
        ata_device.set_test_is_active(True)

        with pytest.raises(errors.TestRunningError):
            ata_device.set_aodc_enabled(False, executor)

        assert executor.calls == []
