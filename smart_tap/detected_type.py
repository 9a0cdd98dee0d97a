from __future__ import annotations

from enum import Enum


class DetectedType(Enum):
    """Device category, as far as smartctl output lets us tell."""

    UNKNOWN = "unknown"
    # smartctl asked for "-d TYPE"; the probe has to be repeated with one.
    NEEDS_EXPLICIT_TYPE = "needs_explicit_type"
    ATA_ANY = "any_ata"
    ATA_HDD = "ata_hdd"
    ATA_SSD = "ata_ssd"
    NVME = "nvme"
    BASIC_SCSI = "basic_scsi"
    CD_DVD = "cd_dvd"
    UNSUPPORTED_RAID = "unsupported_raid"

    @property
    def storable_name(self) -> str:
        return self.value

    @property
    def displayable_name(self) -> str:
        return _DISPLAYABLE_NAMES[self]

    @property
    def is_ata(self) -> bool:
        return self in ATA_TYPES

    @property
    def is_scsi_family(self) -> bool:
        return self in SCSI_FAMILY_TYPES

    @property
    def is_resolved(self) -> bool:
        return self not in (DetectedType.UNKNOWN, DetectedType.NEEDS_EXPLICIT_TYPE)

    @classmethod
    def from_storable_name(
        cls, name: str, default: DetectedType | None = None
    ) -> DetectedType:
        try:
            return cls(name.strip().lower())
        except ValueError:
            return DetectedType.BASIC_SCSI if default is None else default


ATA_TYPES = frozenset({DetectedType.ATA_ANY, DetectedType.ATA_HDD, DetectedType.ATA_SSD})
SCSI_FAMILY_TYPES = frozenset(
    {DetectedType.BASIC_SCSI, DetectedType.CD_DVD, DetectedType.UNSUPPORTED_RAID}
)

_DISPLAYABLE_NAMES = {
    DetectedType.UNKNOWN: "Unknown",
    DetectedType.NEEDS_EXPLICIT_TYPE: "Needs Explicit Type",
    DetectedType.ATA_ANY: "(S)ATA",
    DetectedType.ATA_HDD: "(S)ATA HDD",
    DetectedType.ATA_SSD: "(S)ATA SSD",
    DetectedType.NVME: "NVMe",
    DetectedType.BASIC_SCSI: "Basic SCSI",
    DetectedType.CD_DVD: "CD/DVD",
    DetectedType.UNSUPPORTED_RAID: "Unsupported RAID",
}
