"""Recognizers for ``smartctl --json`` output."""
from __future__ import annotations

import json
from typing import Any

from smart_tap.errors import ParseError
from smart_tap.output_format import ParserType
from smart_tap.parsers.base import (
    AODC_ENABLED_PATH,
    AODC_SUPPORTED_PATH,
    SmartctlParser,
    format_capacity,
)
from smart_tap.properties import PropertyRepository, PropertySection
from smart_tap.schema import validate_smartctl_output

SUPPORTED_JSON_MAJOR_VERSION = 1

# Top-level key (or key prefix ending in "_") -> section.
_SECTIONS: dict[str, PropertySection] = {
    "json_format_version": PropertySection.INFO,
    "smartctl": PropertySection.INFO,
    "device": PropertySection.INFO,
    "model_family": PropertySection.INFO,
    "model_name": PropertySection.INFO,
    "serial_number": PropertySection.INFO,
    "wwn": PropertySection.INFO,
    "firmware_version": PropertySection.INFO,
    "user_capacity": PropertySection.INFO,
    "logical_block_size": PropertySection.INFO,
    "physical_block_size": PropertySection.INFO,
    "rotation_rate": PropertySection.INFO,
    "form_factor": PropertySection.INFO,
    "trim": PropertySection.INFO,
    "in_smartctl_database": PropertySection.INFO,
    "ata_version": PropertySection.INFO,
    "sata_version": PropertySection.INFO,
    "interface_speed": PropertySection.INFO,
    "local_time": PropertySection.INFO,
    "smart_support": PropertySection.INFO,
    "scsi_vendor": PropertySection.INFO,
    "scsi_product": PropertySection.INFO,
    "scsi_model_name": PropertySection.INFO,
    "scsi_revision": PropertySection.INFO,
    "scsi_version": PropertySection.INFO,
    "nvme_pci_vendor": PropertySection.INFO,
    "nvme_ieee_oui_identifier": PropertySection.INFO,
    "nvme_total_capacity": PropertySection.INFO,
    "nvme_unallocated_capacity": PropertySection.INFO,
    "nvme_controller_id": PropertySection.INFO,
    "nvme_version": PropertySection.INFO,
    "nvme_number_of_namespaces": PropertySection.INFO,
    "nvme_namespaces": PropertySection.INFO,
    "smart_status": PropertySection.OVERALL_HEALTH,
    "ata_smart_data": PropertySection.CAPABILITIES,
    "ata_sct_capabilities": PropertySection.CAPABILITIES,
    "nvme_optional_admin_commands": PropertySection.CAPABILITIES,
    "ata_smart_attributes": PropertySection.ATTRIBUTES,
    "nvme_smart_health_information_log": PropertySection.ATTRIBUTES,
    "ata_device_statistics": PropertySection.STATISTICS,
    "power_on_time": PropertySection.STATISTICS,
    "power_cycle_count": PropertySection.STATISTICS,
    "temperature": PropertySection.STATISTICS,
    "ata_smart_error_log": PropertySection.ERROR_LOG,
    "nvme_error_information_log": PropertySection.ERROR_LOG,
    "scsi_error_counter_log": PropertySection.ERROR_LOG,
    "ata_smart_self_test_log": PropertySection.SELFTEST_LOG,
    "nvme_self_test_log": PropertySection.SELFTEST_LOG,
    "scsi_self_test_": PropertySection.SELFTEST_LOG,
    "ata_smart_selective_self_test_log": PropertySection.SELECTIVE_SELFTEST_LOG,
    "ata_sct_temperature_history": PropertySection.TEMPERATURE_LOG,
    "ata_sct_erc": PropertySection.ERC_LOG,
    "sata_phy_event_counters": PropertySection.PHY_LOG,
    "ata_log_directory": PropertySection.DIRECTORY_LOG,
}

_BASIC_SECTIONS = frozenset({PropertySection.INFO, PropertySection.OVERALL_HEALTH})

# Key prefixes that belong to other protocols, per recognizer.
_FOREIGN_PREFIXES: dict[ParserType, tuple[str, ...]] = {
    ParserType.ATA: ("nvme_", "scsi_"),
    ParserType.NVME: ("ata_", "sata_", "scsi_"),
    ParserType.SCSI: ("ata_", "sata_", "nvme_"),
}

_PROTOCOLS: dict[ParserType, str] = {
    ParserType.ATA: "ata",
    ParserType.NVME: "nvme",
    ParserType.SCSI: "scsi",
}

# The embedded text output (--json=o) is not a property.
_SKIPPED_PATHS = frozenset({"smartctl/output"})


def section_for_key(key: str) -> PropertySection:
    if key in _SECTIONS:
        return _SECTIONS[key]
    for prefix, section in _SECTIONS.items():
        if prefix.endswith("_") and key.startswith(prefix):
            return section
    return PropertySection.UNKNOWN


def _readable(value: Any) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value)


class JsonParser(SmartctlParser):
    """Flattens the JSON document into ``a/b/c`` paths.

    The basic variant keeps the identity and health parts only; the
    protocol variants keep everything except other protocols' keys and
    reject output describing a device of another protocol.
    """

    def __init__(self, parser_type: ParserType = ParserType.BASIC) -> None:
        super().__init__()
        self.parser_type = parser_type

    def parse(self, output: str) -> PropertyRepository:
        data = self._load(output)
        self._check_protocol(data)

        repo = PropertyRepository()
        for key, value in data.items():
            section = section_for_key(key)
            if self.parser_type == ParserType.BASIC and section not in _BASIC_SECTIONS:
                continue
            if key.startswith(_FOREIGN_PREFIXES.get(self.parser_type, ())):
                continue
            self._flatten(repo, key, value, section)

        passed = repo.lookup("smart_status/passed")
        if passed is not None:
            repo.set(passed.path, passed.value, "PASSED" if passed.value else "FAILED", passed.section)
        self._add_capacity(data, repo)
        protocol = str(data.get("device", {}).get("protocol", "")).lower()
        if protocol == "nvme" and "smart_support/available" not in repo:
            # NVMe health information is mandatory and cannot be switched off.
            repo.set("smart_support/available", True, "Available", PropertySection.INFO)
            repo.set("smart_support/enabled", True, "Enabled", PropertySection.INFO)
        if self.parser_type == ParserType.ATA:
            self._add_offline_collection(data, repo)

        if self.parser_type == ParserType.BASIC and not self._has_identity(repo):
            messages = self._error_messages(data)
            raise ParseError(messages or "Empty device information in smartctl output.")
        return repo

    def _load(self, output: str) -> dict[str, Any]:
        try:
            data = json.loads(output)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Invalid JSON data: {exc}") from exc
        errors = validate_smartctl_output(data)
        if errors:
            raise ParseError(f"Not a smartctl JSON document: {'; '.join(errors)}")
        major = data["json_format_version"][0]
        if major != SUPPORTED_JSON_MAJOR_VERSION:
            raise ParseError(f"Unsupported smartctl JSON format version {major}.")
        return data

    def _check_protocol(self, data: dict[str, Any]) -> None:
        expected = _PROTOCOLS.get(self.parser_type)
        protocol = str(data.get("device", {}).get("protocol", "")).lower()
        if expected and protocol and protocol != expected:
            raise ParseError(
                f"Output describes a {protocol.upper()} device, not {expected.upper()}."
            )

    def _flatten(
        self, repo: PropertyRepository, path: str, value: Any, section: PropertySection
    ) -> None:
        if path in _SKIPPED_PATHS:
            return
        if isinstance(value, dict):
            for key, child in value.items():
                self._flatten(repo, f"{path}/{key}", child, section)
        elif isinstance(value, list):
            if all(not isinstance(item, (dict, list)) for item in value):
                separator = "." if path.endswith("version") else ", "
                joined = separator.join(str(item) for item in value)
                repo.set(path, joined, joined, section)
            else:
                for index, item in enumerate(value):
                    self._flatten(repo, f"{path}/{index}", item, section)
        elif isinstance(value, (bool, int, str)):
            repo.set(path, value, _readable(value), section)
        elif isinstance(value, float):
            repo.set(path, str(value), str(value), section)
        elif value is not None:
            self.logger.debug("Skipping %s of unexpected type %s", path, type(value).__name__)

    @staticmethod
    def _add_capacity(data: dict[str, Any], repo: PropertyRepository) -> None:
        size_bytes = data.get("user_capacity", {}).get("bytes")
        if size_bytes is None:
            size_bytes = data.get("nvme_total_capacity")
        if not isinstance(size_bytes, int):
            return
        repo.set(
            "user_capacity/bytes/_short",
            size_bytes,
            format_capacity(size_bytes),
            PropertySection.INFO,
        )

    @staticmethod
    def _add_offline_collection(data: dict[str, Any], repo: PropertyRepository) -> None:
        smart_data = data.get("ata_smart_data", {})
        caps = smart_data.get("capabilities", {}).get("values")
        if isinstance(caps, list) and caps and isinstance(caps[0], int):
            repo.set(AODC_SUPPORTED_PATH, bool(caps[0] & 0x02), hex(caps[0]), PropertySection.INTERNAL)
        status = smart_data.get("offline_data_collection", {}).get("status", {}).get("value")
        if isinstance(status, int):
            repo.set(AODC_ENABLED_PATH, bool(status & 0x80), hex(status), PropertySection.INTERNAL)

    @staticmethod
    def _has_identity(repo: PropertyRepository) -> bool:
        return any(
            path in repo
            for path in ("model_name", "scsi_model_name", "device/type", "smart_support/available")
        )

    @staticmethod
    def _error_messages(data: dict[str, Any]) -> str:
        messages = data.get("smartctl", {}).get("messages", [])
        return " ".join(
            str(message.get("string", "")).strip()
            for message in messages
            if isinstance(message, dict) and message.get("severity") == "error"
        )
