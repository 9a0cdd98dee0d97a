from __future__ import annotations

import logging

from smart_tap.properties import PropertyRepository

# Set by the text recognizer; JSON output carries device/type and device/protocol instead.
DETECTED_TYPE_MARKER_PATH = "_text_only/custom/parser_detected_drive_type"
AODC_SUPPORTED_PATH = "_internal/aodc_supported"
AODC_ENABLED_PATH = "_internal/aodc_enabled"


class SmartctlParser:
    """Turns one smartctl output into a property repository.

    ``parse`` raises ParseError when the output cannot be interpreted.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    def parse(self, output: str) -> PropertyRepository:
        raise NotImplementedError


def format_capacity(size_bytes: int) -> str:
    """Decimal units, the way smartctl prints capacities ("500 GB", "1.00 TB")."""
    size = float(size_bytes)
    for unit in ["bytes", "KB", "MB", "GB", "TB"]:
        if size < 1000:
            break
        size /= 1000
    else:
        unit = "PB"
    if unit == "bytes":
        return f"{size_bytes} bytes"
    if size >= 100 or size == int(size):
        return f"{size:.0f} {unit}"
    return f"{size:.2f} {unit}"
