"""Enumerate drives smartctl can be pointed at."""
from __future__ import annotations

import logging
import platform
import re

import psutil

logger = logging.getLogger(__name__)

# Block devices that never have SMART data.
_VIRTUAL_PREFIXES = ("loop", "ram", "dm-", "zram", "md", "nbd")

_NVME_NAMESPACE_RE = re.compile(r"^nvme(\d+)n\d+$")
_PARTITION_RES = [
    re.compile(r"^nvme\d+n\d+p\d+$"),
    re.compile(r"^mmcblk\d+p\d+$"),
    re.compile(r"^(?:[shv]d|xvd)[a-z]+\d+$"),
    # FreeBSD slices and partitions (ada0p1, da0s1)
    re.compile(r"^(?:ada|da|nvd|nda)\d+[ps]\d+"),
]
_WINDOWS_DRIVE_RE = re.compile(r"^PhysicalDrive(\d+)$", re.IGNORECASE)


def device_path_for(name: str, system: str | None = None) -> str | None:
    """Map a psutil disk name to a smartctl device path, or None to skip it."""
    system = (system or platform.system()).lower()
    if system == "windows":
        match = _WINDOWS_DRIVE_RE.match(name)
        return f"/dev/pd{match.group(1)}" if match else None

    if name.startswith(_VIRTUAL_PREFIXES):
        return None
    if any(pattern.match(name) for pattern in _PARTITION_RES):
        return None
    # smartctl talks to the NVMe controller, not the namespace.
    nvme = _NVME_NAMESPACE_RE.match(name)
    if nvme:
        return f"/dev/nvme{nvme.group(1)}"
    return f"/dev/{name}"


def detect_devices() -> list[str]:
    io_stats = psutil.disk_io_counters(perdisk=True) or {}
    system = platform.system()
    devices: list[str] = []
    for name in sorted(io_stats):
        device = device_path_for(name, system)
        if device is None:
            logger.debug("Skipping %s, not a drive.", name)
            continue
        if device not in devices:
            devices.append(device)
    logger.debug("Detected devices: %s", devices)
    return devices
