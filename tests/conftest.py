"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from smart_tap.executor import ExecutionOutcome, ExecutionResult
from smart_tap.output_format import OutputFormat, ParserType


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "windows: mark test as Windows-specific"
    )
    config.addinivalue_line(
        "markers", "linux: mark test as Linux-specific"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


ATA_BASIC_TEXT = """\
smartctl 7.4 2023-08-01 r5530 [x86_64-linux-6.5.0-21-generic] (local build)
Copyright (C) 2002-23, Bruce Allen, Christian Franke, www.smartmontools.org

=== START OF INFORMATION SECTION ===
Model Family:     Western Digital Blue
Device Model:     WDC WD10EZEX-08WN4A0
Serial Number:    WD-WCC6Y0123456
LU WWN Device Id: 5 0014ee 2b1234567
Firmware Version: 01.01A01
User Capacity:    1,000,204,886,016 bytes [1.00 TB]
Sector Sizes:     512 bytes logical, 4096 bytes physical
Rotation Rate:    7200 rpm
Form Factor:      3.5 inches
Device is:        In smartctl database 7.3/5528
ATA Version is:   ACS-3 T13/2161-D revision 3b
SATA Version is:  SATA 3.1, 6.0 Gb/s (current: 6.0 Gb/s)
Local Time is:    Mon Oct 19 10:00:00 2026 UTC
SMART support is: Available - device has SMART capability.
SMART support is: Enabled

=== START OF READ SMART DATA SECTION ===
SMART overall-health self-assessment test result: PASSED
"""

ATA_FULL_TEXT = ATA_BASIC_TEXT + """\

General SMART Values:
Offline data collection status:  (0x82)\tOffline data collection activity
\t\t\t\t\twas completed without error.
\t\t\t\t\tAuto Offline Data Collection: Enabled.
Self-test execution status:      (   0)\tThe previous self-test routine completed
\t\t\t\t\twithout error or no self-test has ever
\t\t\t\t\tbeen run.
Offline data collection
capabilities: \t\t\t (0x7b) SMART execute Offline immediate.
\t\t\t\t\tAuto Offline data collection on/off support.

SMART Attributes Data Structure revision number: 16
Vendor Specific SMART Attributes with Thresholds:
ID# ATTRIBUTE_NAME          FLAGS    VALUE WORST THRESH FAIL RAW_VALUE
  1 Raw_Read_Error_Rate     POSR-K   200   200   051    -    0
  5 Reallocated_Sector_Ct   PO--CK   200   200   140    -    0
  9 Power_On_Hours          -O--CK   087   087   000    -    9876
194 Temperature_Celsius     -O---K   112   104   000    -    35
                            ||||||_ K auto-keep
                            |||||__ C event count

SMART Error Log Version: 1
No Errors Logged

SMART Self-test log structure revision number 1
Num  Test_Description    Status                  Remaining  LifeTime(hours)  LBA_of_first_error
# 1  Short offline       Completed without error       00%      9870         -
# 2  Extended offline    Completed without error       00%      9500         -
"""

SCSI_BASIC_TEXT = """\
smartctl 7.4 2023-08-01 r5530 [x86_64-linux-6.5.0-21-generic] (local build)
Copyright (C) 2002-23, Bruce Allen, Christian Franke, www.smartmontools.org

=== START OF INFORMATION SECTION ===
Vendor:               SEAGATE
Product:              ST4000NM0023
Revision:             0004
User Capacity:        4,000,787,030,016 bytes [4.00 TB]
Logical block size:   512 bytes
Rotation Rate:        7200 rpm
Serial number:        Z1Z0ABCD
Device type:          disk
Local Time is:        Mon Oct 19 10:00:00 2026 UTC
SMART support is:     Available - device has SMART capability.
SMART support is:     Enabled

=== START OF READ SMART DATA SECTION ===
SMART Health Status: OK
"""

NEEDS_TYPE_TEXT = """\
smartctl 7.4 2023-08-01 r5530 [x86_64-linux-6.5.0-21-generic] (local build)
Copyright (C) 2002-23, Bruce Allen, Christian Franke, www.smartmontools.org

/dev/sdb: Unknown USB bridge [0x152d:0x0578 (0x205)]
Please specify device type with the -d option.

Use smartctl -h to get a usage summary
"""

NVME_BASIC_DATA = {
    "json_format_version": [1, 0],
    "smartctl": {
        "version": [7, 4],
        "svn_revision": "5530",
        "argv": ["smartctl", "--info", "--health", "--capabilities", "--json=o", "/dev/nvme0"],
        "output": ["smartctl 7.4 2023-08-01 r5530", "=== START OF INFORMATION SECTION ==="],
        "exit_status": 0,
    },
    "local_time": {"time_t": 1792404000, "asctime": "Mon Oct 19 10:00:00 2026 UTC"},
    "device": {"name": "/dev/nvme0", "info_name": "/dev/nvme0", "type": "nvme", "protocol": "NVMe"},
    "model_name": "Samsung SSD 980 PRO 1TB",
    "serial_number": "S5GXNF0R123456",
    "firmware_version": "5B2QGXA7",
    "nvme_pci_vendor": {"id": 5197, "subsystem_id": 5197},
    "nvme_total_capacity": 1000204886016,
    "user_capacity": {"blocks": 1953525168, "bytes": 1000204886016},
    "smart_status": {"passed": True, "nvme": {"value": 0}},
}

NVME_FULL_DATA = dict(
    NVME_BASIC_DATA,
    nvme_smart_health_information_log={
        "critical_warning": 0,
        "temperature": 35,
        "available_spare": 100,
        "percentage_used": 1,
        "power_on_hours": 1234,
    },
    nvme_self_test_log={
        "current_self_test_operation": {"value": 0, "string": "No self-test in progress"},
        "table": [
            {
                "self_test_code": {"value": 1, "string": "Short"},
                "self_test_result": {"value": 0, "string": "Completed without error"},
                "power_on_hours": 1200,
            }
        ],
    },
)

ATA_JSON_DATA = {
    "json_format_version": [1, 0],
    "smartctl": {"version": [7, 4], "exit_status": 0},
    "device": {"name": "/dev/sda", "info_name": "/dev/sda [SAT]", "type": "sat", "protocol": "ATA"},
    "model_family": "Samsung based SSDs",
    "model_name": "Samsung SSD 870 EVO 500GB",
    "serial_number": "S62ANJ0R123456",
    "user_capacity": {"blocks": 976773168, "bytes": 500107862016},
    "rotation_rate": 0,
    "smart_support": {"available": True, "enabled": True},
    "smart_status": {"passed": True},
    "ata_smart_data": {
        "offline_data_collection": {"status": {"value": 0, "string": "was never started"}},
        "capabilities": {"values": [83, 3], "exec_offline_immediate_supported": True},
    },
    "ata_smart_attributes": {
        "revision": 1,
        "table": [
            {"id": 9, "name": "Power_On_Hours", "value": 99, "worst": 99, "thresh": 0,
             "raw": {"value": 4321, "string": "4321"}},
        ],
    },
    "ata_smart_self_test_log": {"standard": {"revision": 1, "count": 0}},
}


def ok(stdout: str) -> ExecutionResult:
    return ExecutionResult(stdout, ExecutionOutcome.OK, "", 0)


def failed(stdout: str = "", message: str = "Device open failed.") -> ExecutionResult:
    return ExecutionResult(stdout, ExecutionOutcome.FAILED, message, 2)


def permission_denied() -> ExecutionResult:
    return ExecutionResult(
        "Smartctl open device: /dev/sda failed: Permission denied",
        ExecutionOutcome.PERMISSION_DENIED,
        "Permission denied while opening device.",
        2,
    )


class FakeExecutor:
    """Replays scripted results and records what it was asked to run."""

    def __init__(self, *results: ExecutionResult) -> None:
        self.results = list(results)
        self.calls: list[tuple[str, list[str]]] = []

    def run(self, device, options):
        self.calls.append((device, list(options)))
        return self.results.pop(0)


@pytest.fixture
def text_formats():
    """Recognizer formats forcing text output for every parser type."""
    return {parser_type: OutputFormat.TEXT for parser_type in ParserType}


@pytest.fixture
def ata_basic_text():
    return ATA_BASIC_TEXT


@pytest.fixture
def ata_full_text():
    return ATA_FULL_TEXT


@pytest.fixture
def scsi_basic_text():
    return SCSI_BASIC_TEXT


@pytest.fixture
def needs_type_text():
    return NEEDS_TYPE_TEXT


@pytest.fixture
def nvme_basic_json():
    return json.dumps(NVME_BASIC_DATA)


@pytest.fixture
def nvme_full_json():
    return json.dumps(NVME_FULL_DATA)


@pytest.fixture
def ata_json():
    return json.dumps(ATA_JSON_DATA)


@pytest.fixture
def results():
    """Factories for scripted executor results."""
    return SimpleNamespace(ok=ok, failed=failed, permission_denied=permission_denied)


@pytest.fixture
def make_executor():
    return FakeExecutor
