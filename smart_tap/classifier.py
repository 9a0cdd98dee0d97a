"""Narrow down a device's category from parsed properties."""
from __future__ import annotations

import logging
import platform
import re

from smart_tap.detected_type import DetectedType
from smart_tap.parsers.base import DETECTED_TYPE_MARKER_PATH
from smart_tap.properties import PropertyRepository

logger = logging.getLogger(__name__)

_OPTICAL_NAME_RE = re.compile(r"^(?:sr|scd)\d*$")


def device_base_name(device_path: str) -> str:
    return device_path.rstrip("/").rsplit("/", 1)[-1]


def is_optical_device_name(device_path: str) -> bool:
    """Linux names optical drives sr0, sr1... (scd0 on old kernels)."""
    if platform.system().lower() != "linux":
        return False
    return bool(_OPTICAL_NAME_RE.match(device_base_name(device_path)))


def _ata_by_rotation(repository: PropertyRepository) -> DetectedType:
    rpm = repository.lookup("rotation_rate")
    if rpm is None or rpm.value == 0:
        return DetectedType.ATA_SSD
    return DetectedType.ATA_HDD


def refine(
    existing: DetectedType, repository: PropertyRepository, device_path: str = ""
) -> DetectedType:
    """Return the category the parsed properties point to.

    The text recognizer's type marker wins; otherwise smartctl's JSON
    device type and protocol are used. Anything still unresolved falls back
    to basic SCSI, which gets the most conservative probes.
    """
    detected = existing

    marker = repository.lookup(DETECTED_TYPE_MARKER_PATH)
    device_type = repository.lookup("device/type")
    if marker is not None:
        detected = DetectedType.from_storable_name(str(marker.value), DetectedType.BASIC_SCSI)
        if detected == DetectedType.ATA_ANY:
            detected = _ata_by_rotation(repository)

    elif device_type is not None:
        # USB flash drives in non-scsi mode do not have this property.
        smartctl_type = str(device_type.value).lower()
        protocol_prop = repository.lookup("device/protocol")
        protocol = str(protocol_prop.value).lower() if protocol_prop is not None else ""

        if smartctl_type == "scsi":
            if is_optical_device_name(device_path):
                detected = DetectedType.CD_DVD
            else:
                detected = DetectedType.BASIC_SCSI
        elif smartctl_type == "sat" or protocol == "ata":
            detected = _ata_by_rotation(repository)
        # NVMe behind a USB bridge reports a bridge type (e.g. "sntrealtek") with protocol "nvme".
        elif smartctl_type == "nvme" or protocol == "nvme":
            detected = DetectedType.NVME
        else:
            # TODO: recognize controllers smartctl cannot pass through and report UNSUPPORTED_RAID
            logger.warning(
                "Unsupported type %s (protocol: %s) reported by smartctl for %s",
                smartctl_type,
                protocol,
                device_path,
            )

    if not detected.is_resolved:
        detected = DetectedType.BASIC_SCSI

    logger.debug("Device %s detected after parser to be of type %s", device_path, detected.storable_name)
    return detected
