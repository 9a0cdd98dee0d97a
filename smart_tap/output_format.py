from __future__ import annotations

from enum import Enum
import json
import logging
import re
from typing import Mapping

from smart_tap.detected_type import DetectedType
from smart_tap.schema import validate_smartctl_output

logger = logging.getLogger(__name__)

_TEXT_VERSION_RE = re.compile(r"^smartctl\s+\d+\.\d+", re.IGNORECASE | re.MULTILINE)


class OutputFormat(Enum):
    TEXT = "text"
    JSON = "json"


class ParserType(Enum):
    """Which recognizer variant runs over an output."""

    BASIC = "basic"
    ATA = "ata"
    NVME = "nvme"
    SCSI = "scsi"


DEFAULT_FORMATS: dict[ParserType, OutputFormat] = {
    ParserType.BASIC: OutputFormat.JSON,
    ParserType.ATA: OutputFormat.JSON,
    ParserType.NVME: OutputFormat.JSON,
    ParserType.SCSI: OutputFormat.JSON,
}


def detect_output_format(output: str) -> OutputFormat | None:
    """Tell JSON output from legacy text output.

    Returns None when neither is recognizable; callers treat that as text.
    """
    stripped = output.strip()
    if stripped.startswith("{"):
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError:
            logger.debug("Output looks like JSON but does not decode.")
            return None
        errors = validate_smartctl_output(data)
        if errors:
            logger.debug("JSON output lacks the smartctl envelope: %s", errors)
            return None
        return OutputFormat.JSON
    if _TEXT_VERSION_RE.search(stripped):
        return OutputFormat.TEXT
    return None


def detect_output_format_or_text(output: str) -> OutputFormat:
    output_format = detect_output_format(output)
    if output_format is None:
        logger.warning("Cannot detect smartctl output format. Assuming text.")
        return OutputFormat.TEXT
    return output_format


def default_parser_type(detected_type: DetectedType) -> ParserType:
    if detected_type.is_ata:
        return ParserType.ATA
    if detected_type == DetectedType.NVME:
        return ParserType.NVME
    if detected_type == DetectedType.BASIC_SCSI:
        return ParserType.SCSI
    # Optical drives, unsupported RAID and unresolved types only get the basic info.
    return ParserType.BASIC


def default_format(
    parser_type: ParserType,
    overrides: Mapping[ParserType, OutputFormat] | None = None,
) -> OutputFormat:
    if overrides and parser_type in overrides:
        return overrides[parser_type]
    return DEFAULT_FORMATS[parser_type]
