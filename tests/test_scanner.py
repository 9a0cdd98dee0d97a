"""Tests for drive enumeration."""
from __future__ import annotations

from unittest.mock import patch

import pytest

from smart_tap.scanner import detect_devices, device_path_for


@pytest.mark.linux
class TestLinuxNames:
    """Linux block device names."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("sda", "/dev/sda"),
            ("sr0", "/dev/sr0"),
            ("mmcblk0", "/dev/mmcblk0"),
            ("nvme0n1", "/dev/nvme0"),
            ("nvme1n2", "/dev/nvme1"),
        ],
    )
    def test_drives(self, name, expected):
        """Test whole drives map to their smartctl device path."""
        assert device_path_for(name, "Linux") == expected

    @pytest.mark.parametrize(
        "name", ["sda1", "nvme0n1p2", "mmcblk0p1", "loop3", "ram0", "dm-0", "zram0", "md127"]
    )
    def test_skipped(self, name):
        """Test partitions and virtual devices are skipped."""
        assert device_path_for(name, "Linux") is None

    @patch("psutil.disk_io_counters")
    def test_detect_devices(self, mock_counters):
        """Test namespaces of one controller are reported once, in order."""
        mock_counters.return_value = {
            "sdb": object(),
            "sda": object(),
            "sda1": object(),
            "nvme0n1": object(),
            "nvme0n2": object(),
            "loop0": object(),
        }
        with patch("platform.system", return_value="Linux"):
            assert detect_devices() == ["/dev/nvme0", "/dev/sda", "/dev/sdb"]
        mock_counters.assert_called_once_with(perdisk=True)

    @patch("psutil.disk_io_counters", return_value=None)
    def test_no_disks(self, mock_counters):
        """Test systems without disk counters yield no devices."""
        assert detect_devices() == []


@pytest.mark.windows
class TestWindowsNames:
    """Windows physical drive names."""

    def test_physical_drive(self):
        """Test PhysicalDriveN maps to /dev/pdN."""
        assert device_path_for("PhysicalDrive1", "Windows") == "/dev/pd1"

    def test_other_names_skipped(self):
        """Test anything else is skipped."""
        assert device_path_for("C:", "Windows") is None
