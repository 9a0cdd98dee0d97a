from __future__ import annotations

from dataclasses import replace

from smart_tap.detected_type import DetectedType
from smart_tap.properties import PropertyRepository, PropertySection, StorageProperty

# path -> (displayable name, description)
_DESCRIPTIONS: dict[str, tuple[str, str]] = {
    "model_family": ("Model Family", "Model family (from smartctl database)"),
    "model_name": ("Device Model", "Device model"),
    "scsi_model_name": ("Device Model", "Device model reported by the SCSI layer"),
    "scsi_vendor": ("Vendor", "Device vendor"),
    "serial_number": ("Serial Number", "Serial number, unique to each physical drive"),
    "firmware_version": ("Firmware Version", "Drive firmware version"),
    "user_capacity/bytes": ("Capacity", "User-serviceable drive capacity as reported to an operating system"),
    "user_capacity/bytes/_short": ("Capacity", "User-serviceable drive capacity as reported to an operating system"),
    "rotation_rate": ("Rotation Rate", "Drive RPM (0 for solid state devices)"),
    "smart_support/available": ("SMART Supported", "Whether the device supports SMART"),
    "smart_support/enabled": ("SMART Enabled", "Whether SMART is enabled on the device"),
    "smart_status/passed": (
        "Overall Health Self-Assessment Test",
        "Overall health self-assessment test result. A failure indicates the drive is "
        "likely to fail soon and its data should be backed up.",
    ),
    "device/type": ("smartctl Device Type", "Device type as used by smartctl -d"),
    "device/protocol": ("Device Protocol", "Protocol used to talk to the device"),
}


def _humanize(path: str) -> str:
    parts = [part for part in path.split("/") if not part.startswith("_") and not part.isdigit()]
    name = parts[-1] if parts else path
    return name.replace("_", " ").strip().capitalize()


def process_properties(
    repository: PropertyRepository, detected_type: DetectedType
) -> PropertyRepository:
    """Attach displayable names and descriptions; returns a new repository."""
    processed = PropertyRepository()
    for prop in repository:
        processed.add(_process_property(prop, detected_type))
    return processed


def _process_property(prop: StorageProperty, detected_type: DetectedType) -> StorageProperty:
    displayable_name, description = _DESCRIPTIONS.get(prop.path, ("", ""))
    section = prop.section
    if section == PropertySection.UNKNOWN and prop.path.startswith("_"):
        section = PropertySection.INTERNAL
    if prop.path == "rotation_rate" and detected_type == DetectedType.NVME:
        description = "Not applicable to NVMe devices"
    return replace(
        prop,
        section=section,
        displayable_name=prop.displayable_name or displayable_name or _humanize(prop.path),
        description=prop.description or description,
    )
