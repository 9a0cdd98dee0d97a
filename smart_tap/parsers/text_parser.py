"""Recognizers for the legacy, line-oriented smartctl output."""
from __future__ import annotations

import re

from smart_tap.detected_type import DetectedType
from smart_tap.errors import ParseError
from smart_tap.parsers.base import (
    AODC_ENABLED_PATH,
    AODC_SUPPORTED_PATH,
    DETECTED_TYPE_MARKER_PATH,
    SmartctlParser,
    format_capacity,
)
from smart_tap.properties import PropertyRepository, PropertySection

_FLAGS = re.IGNORECASE | re.MULTILINE

_VERSION_RE = re.compile(r"^smartctl\s+(\d+\.\d+)", _FLAGS)

# (pattern, property path); first match wins within one path.
_INFO_FIELDS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^Model Family:[ \t]*(.*)$", _FLAGS), "model_family"),
    (re.compile(r"^Device Model:[ \t]*(.*)$", _FLAGS), "model_name"),
    (re.compile(r"^Model Number:[ \t]*(.*)$", _FLAGS), "model_name"),
    (re.compile(r"^Product:[ \t]*(.*)$", _FLAGS), "scsi_model_name"),
    # Older smartctl on usb flash drives
    (re.compile(r"^Device:[ \t]*(.*?)(?:[ \t]+Version:.*)?$", _FLAGS), "scsi_model_name"),
    (re.compile(r"^Vendor:[ \t]*(.*)$", _FLAGS), "scsi_vendor"),
    (re.compile(r"^Serial Number:[ \t]*(.*)$", _FLAGS), "serial_number"),
    (re.compile(r"^Firmware Version:[ \t]*(.*)$", _FLAGS), "firmware_version"),
    (re.compile(r"^Revision:[ \t]*(.*)$", _FLAGS), "scsi_revision"),
    (re.compile(r"^Form Factor:[ \t]*(.*)$", _FLAGS), "form_factor/name"),
    (re.compile(r"^ATA Version is:[ \t]*(.*)$", _FLAGS), "ata_version/string"),
    (re.compile(r"^SATA Version is:[ \t]*(.*)$", _FLAGS), "sata_version/string"),
    (re.compile(r"^NVMe Version:[ \t]*(.*)$", _FLAGS), "nvme_version/string"),
]

_CAPACITY_RE = re.compile(
    r"^(?:User Capacity|Total NVM Capacity):[ \t]*([\d,.']+)(?:[ \t]*bytes)?(?:[ \t]*\[(.*?)\])?",
    _FLAGS,
)
_ROTATION_RPM_RE = re.compile(r"^Rotation Rate:[ \t]*(\d+)\s*rpm", _FLAGS)
_ROTATION_SSD_RE = re.compile(r"^Rotation Rate:[ \t]*Solid State Device", _FLAGS)

_SMART_UNSUPPORTED_RES = [
    re.compile(r"^SMART support is:[ \t]*Unavailable", _FLAGS),  # optical drives
    re.compile(r"Device does not support SMART", _FLAGS),  # usb flash, non-smart disks
    re.compile(r"Device Read Identity Failed \(not an ATA/ATAPI device\)", _FLAGS),
]
_SMART_AVAILABLE_RE = re.compile(r"^SMART support is:[ \t]*(?:Available|Ambiguous)", _FLAGS)
_SMART_ENABLED_RE = re.compile(r"^SMART support is:[ \t]*Enabled", _FLAGS)
_SMART_DISABLED_RE = re.compile(r"^SMART support is:[ \t]*Disabled", _FLAGS)

_HEALTH_ATA_RE = re.compile(r"^SMART overall-health self-assessment test result:[ \t]*(\S+)", _FLAGS)
_HEALTH_SCSI_RE = re.compile(r"^SMART Health Status:[ \t]*(.+?)\s*$", _FLAGS)

_TYPE_HINTS: list[tuple[re.Pattern[str], DetectedType]] = [
    (re.compile(r"please try adding '-d megaraid,N'", _FLAGS), DetectedType.UNSUPPORTED_RAID),
    (re.compile(r"this device: CD/DVD|^Device type:[ \t]*CD/DVD", _FLAGS), DetectedType.CD_DVD),
    (re.compile(r"^NVMe Version:|^PCI Vendor/Subsystem ID:", _FLAGS), DetectedType.NVME),
    (re.compile(r"^(?:S?ATA Version is:|Device Model:)", _FLAGS), DetectedType.ATA_ANY),
    (re.compile(r"^(?:Vendor:|Product:|Device type:)", _FLAGS), DetectedType.BASIC_SCSI),
]

_DATA_SECTION_RE = re.compile(r"^=== START OF READ SMART DATA SECTION ===", _FLAGS)
_OFFLINE_STATUS_RE = re.compile(r"^Offline data collection status:\s*\((0x[0-9a-f]+)\)", _FLAGS)
_OFFLINE_CAPS_RE = re.compile(
    r"^Offline data collection\s+capabilities:\s*\((0x[0-9a-f]+)\)", _FLAGS
)

_ATTR_BRIEF_RE = re.compile(
    r"^\s*(\d+)\s+(\S+)\s+([POSRCK-]{6})\s+(\d+)\s+(\d+|---)\s+(\d+|---)\s+(\S+)\s+(.+?)\s*$",
    re.MULTILINE,
)
_ATTR_OLD_RE = re.compile(
    r"^\s*(\d+)\s+(\S+)\s+(0x[0-9a-f]{4})\s+(\d+)\s+(\d+|---)\s+(\d+|---)\s+(\S+)\s+(\S+)\s+(\S+)\s+(.+?)\s*$",
    _FLAGS,
)

_SELFTEST_HEADERS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^SMART Extended Self-test Log Version:[ \t]*(\d+)", _FLAGS), "extended"),
    (re.compile(r"^SMART Self-test log structure revision number[ \t]*(\d+)", _FLAGS), "standard"),
]
_SELFTEST_ENTRY_RE = re.compile(
    r"^#\s*(\d+)\s+(.+?)\s{2,}(.+?)\s+(\d+)%\s+(\d+)\s+(\S+)\s*$", re.MULTILINE
)
_SELFTEST_EMPTY_RE = re.compile(r"^No self-tests have been logged", _FLAGS)

_ERROR_LOG_HEADERS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^SMART Extended Comprehensive Error Log Version:[ \t]*(\d+)", _FLAGS), "extended"),
    (re.compile(r"^SMART Error Log Version:[ \t]*(\d+)", _FLAGS), "summary"),
]
_ERROR_COUNT_RE = re.compile(r"^(?:ATA )?Error Count:[ \t]*(\d+)", _FLAGS)
_NO_ERRORS_RE = re.compile(r"^No Errors Logged", _FLAGS)


def _clean(value: str) -> str:
    return re.sub(r" {2,}", " ", value.strip())


def _parse_int(value: str) -> int:
    return int(re.sub(r"[^\d]", "", value))


class TextBasicParser(SmartctlParser):
    """Information section of any device type, plus the device type guess."""

    def parse(self, output: str) -> PropertyRepository:
        output = output.replace("\r\n", "\n")
        version = _VERSION_RE.search(output)
        if version is None:
            raise ParseError("Cannot get smartctl version information.")

        repo = PropertyRepository()
        repo.set("smartctl/version/_merged", version.group(1), version.group(1), PropertySection.INFO)
        self._parse_info(output, repo)
        self._parse_smart_support(output, repo)
        self._parse_health(output, repo)

        detected = self.detect_type(output)
        if detected is not None:
            repo.set(
                DETECTED_TYPE_MARKER_PATH,
                detected.storable_name,
                detected.displayable_name,
                PropertySection.INTERNAL,
            )
            if detected == DetectedType.NVME and "smart_support/available" not in repo:
                repo.set("smart_support/available", True, "Available", PropertySection.INFO)
                repo.set("smart_support/enabled", True, "Enabled", PropertySection.INFO)

        if len(repo) == 1:
            raise ParseError("No device information found in smartctl output.")
        return repo

    @staticmethod
    def detect_type(output: str) -> DetectedType | None:
        for pattern, detected in _TYPE_HINTS:
            if pattern.search(output):
                return detected
        return None

    def _parse_info(self, output: str, repo: PropertyRepository) -> None:
        for pattern, path in _INFO_FIELDS:
            if path in repo:
                continue
            match = pattern.search(output)
            if match and match.group(1).strip():
                value = _clean(match.group(1))
                repo.set(path, value, value, PropertySection.INFO)

        capacity = _CAPACITY_RE.search(output)
        if capacity:
            try:
                size_bytes = _parse_int(capacity.group(1))
            except ValueError:
                self.logger.debug("Unparsable capacity: %s", capacity.group(1))
            else:
                repo.set(
                    "user_capacity/bytes",
                    size_bytes,
                    f"{capacity.group(1).strip()} bytes",
                    PropertySection.INFO,
                )
                short = capacity.group(2) or format_capacity(size_bytes)
                repo.set("user_capacity/bytes/_short", size_bytes, short.strip(), PropertySection.INFO)

        rpm = _ROTATION_RPM_RE.search(output)
        if rpm:
            repo.set("rotation_rate", int(rpm.group(1)), f"{rpm.group(1)} rpm", PropertySection.INFO)
        elif _ROTATION_SSD_RE.search(output):
            repo.set("rotation_rate", 0, "Solid State Device", PropertySection.INFO)

    def _parse_smart_support(self, output: str, repo: PropertyRepository) -> None:
        if any(pattern.search(output) for pattern in _SMART_UNSUPPORTED_RES):
            repo.set("smart_support/available", False, "Unavailable", PropertySection.INFO)
            repo.set("smart_support/enabled", False, "Disabled", PropertySection.INFO)
            return
        if _SMART_AVAILABLE_RE.search(output):
            repo.set("smart_support/available", True, "Available", PropertySection.INFO)
            if _SMART_ENABLED_RE.search(output):
                repo.set("smart_support/enabled", True, "Enabled", PropertySection.INFO)
            elif _SMART_DISABLED_RE.search(output):
                repo.set("smart_support/enabled", False, "Disabled", PropertySection.INFO)

    def _parse_health(self, output: str, repo: PropertyRepository) -> None:
        ata = _HEALTH_ATA_RE.search(output)
        if ata:
            result = ata.group(1).rstrip("!")
            repo.set("smart_status/passed", result.upper() == "PASSED", result, PropertySection.OVERALL_HEALTH)
            return
        scsi = _HEALTH_SCSI_RE.search(output)
        if scsi:
            result = scsi.group(1)
            repo.set("smart_status/passed", result.upper() == "OK", result, PropertySection.OVERALL_HEALTH)


class TextAtaParser(TextBasicParser):
    """Full (-x style) output of an ATA device."""

    def parse(self, output: str) -> PropertyRepository:
        output = output.replace("\r\n", "\n")
        repo = super().parse(output)
        marker = repo.lookup(DETECTED_TYPE_MARKER_PATH)
        if marker is None or not DetectedType.from_storable_name(str(marker.value)).is_ata:
            raise ParseError("Output does not describe an ATA device.")

        if _DATA_SECTION_RE.search(output) is None:
            self.logger.debug("No SMART data section in ATA output.")
        self._parse_offline_collection(output, repo)
        self._parse_attributes(output, repo)
        self._parse_selftest_log(output, repo)
        self._parse_error_log(output, repo)
        return repo

    def _parse_offline_collection(self, output: str, repo: PropertyRepository) -> None:
        caps = _OFFLINE_CAPS_RE.search(output)
        if caps:
            value = int(caps.group(1), 16)
            repo.set("ata_smart_data/offline_data_collection/capabilities", value, caps.group(1), PropertySection.CAPABILITIES)
            repo.set(AODC_SUPPORTED_PATH, bool(value & 0x02), caps.group(1), PropertySection.INTERNAL)
        status = _OFFLINE_STATUS_RE.search(output)
        if status:
            value = int(status.group(1), 16)
            repo.set("ata_smart_data/offline_data_collection/status/value", value, status.group(1), PropertySection.CAPABILITIES)
            repo.set(AODC_ENABLED_PATH, bool(value & 0x80), status.group(1), PropertySection.INTERNAL)

    def _parse_attributes(self, output: str, repo: PropertyRepository) -> None:
        rows = [(m.group(1), m.group(2), m.group(4), m.group(5), m.group(6), m.group(8))
                for m in _ATTR_BRIEF_RE.finditer(output)]
        if not rows:
            rows = [(m.group(1), m.group(2), m.group(4), m.group(5), m.group(6), m.group(10))
                    for m in _ATTR_OLD_RE.finditer(output)]
        for attr_id, name, value, worst, thresh, raw in rows:
            prefix = f"ata_smart_attributes/table/{attr_id}"
            section = PropertySection.ATTRIBUTES
            repo.set(f"{prefix}/name", name, name.replace("_", " "), section)
            repo.set(f"{prefix}/value", int(value), value, section)
            if worst != "---":
                repo.set(f"{prefix}/worst", int(worst), worst, section)
            if thresh != "---":
                repo.set(f"{prefix}/thresh", int(thresh), thresh, section)
            repo.set(f"{prefix}/raw/string", raw, raw, section)

    def _parse_selftest_log(self, output: str, repo: PropertyRepository) -> None:
        for pattern, kind in _SELFTEST_HEADERS:
            header = pattern.search(output)
            if header is None:
                continue
            prefix = f"ata_smart_self_test_log/{kind}"
            section = PropertySection.SELFTEST_LOG
            repo.set(f"{prefix}/revision", int(header.group(1)), header.group(1), section)
            entries = list(_SELFTEST_ENTRY_RE.finditer(output, header.end()))
            if not entries and _SELFTEST_EMPTY_RE.search(output, header.end()) is None:
                self.logger.debug("Self-test log header without entries.")
            repo.set(f"{prefix}/count", len(entries), str(len(entries)), section)
            for index, entry in enumerate(entries):
                row = f"{prefix}/table/{index}"
                repo.set(f"{row}/type/string", _clean(entry.group(2)), _clean(entry.group(2)), section)
                repo.set(f"{row}/status/string", _clean(entry.group(3)), _clean(entry.group(3)), section)
                repo.set(f"{row}/remaining_percent", int(entry.group(4)), f"{entry.group(4)}%", section)
                repo.set(f"{row}/lifetime_hours", int(entry.group(5)), entry.group(5), section)
            # Both logs print the same rows; one is enough.
            return

    def _parse_error_log(self, output: str, repo: PropertyRepository) -> None:
        for pattern, kind in _ERROR_LOG_HEADERS:
            header = pattern.search(output)
            if header is None:
                continue
            prefix = f"ata_smart_error_log/{kind}"
            section = PropertySection.ERROR_LOG
            repo.set(f"{prefix}/revision", int(header.group(1)), header.group(1), section)
            count = _ERROR_COUNT_RE.search(output, header.end())
            if count:
                repo.set(f"{prefix}/count", int(count.group(1)), count.group(1), section)
            elif _NO_ERRORS_RE.search(output, header.end()):
                repo.set(f"{prefix}/count", 0, "No Errors Logged", section)
            return
