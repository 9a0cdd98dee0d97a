from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Union

PropertyValue = Union[bool, int, str]


class PropertySection(Enum):
    UNKNOWN = "unknown"
    INFO = "info"
    OVERALL_HEALTH = "overall_health"
    CAPABILITIES = "capabilities"
    ATTRIBUTES = "attributes"
    STATISTICS = "statistics"
    ERROR_LOG = "error_log"
    SELFTEST_LOG = "selftest_log"
    SELECTIVE_SELFTEST_LOG = "selective_selftest_log"
    TEMPERATURE_LOG = "temperature_log"
    ERC_LOG = "erc_log"
    PHY_LOG = "phy_log"
    DIRECTORY_LOG = "directory_log"
    INTERNAL = "internal"


@dataclass(frozen=True)
class StorageProperty:
    """One parsed value, addressed by a slash-separated path like ``smart_status/passed``."""

    path: str
    value: PropertyValue
    readable_value: str = ""
    section: PropertySection = PropertySection.UNKNOWN
    displayable_name: str = ""
    description: str = ""

    def to_dict(self) -> dict[str, PropertyValue]:
        return {
            "path": self.path,
            "value": self.value,
            "readable": self.readable_value or str(self.value),
            "section": self.section.value,
        }


class PropertyRepository:
    """Ordered collection of properties keyed by path.

    A repository is filled once by a recognizer and then handed over as a
    whole; devices never patch a repository they already hold.
    """

    def __init__(self, properties: Iterable[StorageProperty] = ()) -> None:
        self._properties: dict[str, StorageProperty] = {}
        for prop in properties:
            self.add(prop)

    def add(self, prop: StorageProperty) -> None:
        self._properties[prop.path] = prop

    def set(
        self,
        path: str,
        value: PropertyValue,
        readable_value: str = "",
        section: PropertySection = PropertySection.UNKNOWN,
    ) -> StorageProperty:
        prop = StorageProperty(
            path=path, value=value, readable_value=readable_value, section=section
        )
        self.add(prop)
        return prop

    def lookup(
        self, path: str, section: PropertySection | None = None
    ) -> StorageProperty | None:
        prop = self._properties.get(path)
        if prop is None:
            return None
        if section is not None and prop.section != section:
            return None
        return prop

    def lookup_first(self, paths: Iterable[str]) -> StorageProperty | None:
        """Return the first property found among ``paths``, tried in order."""
        for path in paths:
            prop = self._properties.get(path)
            if prop is not None:
                return prop
        return None

    def has_section(self, section: PropertySection) -> bool:
        return any(prop.section == section for prop in self._properties.values())

    def __contains__(self, path: object) -> bool:
        return path in self._properties

    def __iter__(self) -> Iterator[StorageProperty]:
        return iter(list(self._properties.values()))

    def __len__(self) -> int:
        return len(self._properties)

    def __bool__(self) -> bool:
        return bool(self._properties)
