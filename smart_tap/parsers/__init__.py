"""smartctl output recognizers and the selector that picks one."""
from __future__ import annotations

from smart_tap.errors import ParseError
from smart_tap.output_format import OutputFormat, ParserType
from smart_tap.parsers.base import (
    AODC_ENABLED_PATH,
    AODC_SUPPORTED_PATH,
    DETECTED_TYPE_MARKER_PATH,
    SmartctlParser,
)
from smart_tap.parsers.json_parser import JsonParser
from smart_tap.parsers.text_parser import TextAtaParser, TextBasicParser

_TEXT_PARSERS: dict[ParserType, type[SmartctlParser]] = {
    ParserType.BASIC: TextBasicParser,
    ParserType.ATA: TextAtaParser,
}


def create_parser(parser_type: ParserType, output_format: OutputFormat) -> SmartctlParser:
    """Return the recognizer for a (parser type, format) pair.

    Raises ParseError for pairs without a recognizer (NVMe and SCSI text).
    """
    if output_format == OutputFormat.JSON:
        return JsonParser(parser_type)
    parser_cls = _TEXT_PARSERS.get(parser_type)
    if parser_cls is None:
        raise ParseError(
            f"No {output_format.value} parser available for {parser_type.value} output."
        )
    return parser_cls()


__all__ = [
    "AODC_ENABLED_PATH",
    "AODC_SUPPORTED_PATH",
    "DETECTED_TYPE_MARKER_PATH",
    "JsonParser",
    "SmartctlParser",
    "TextAtaParser",
    "TextBasicParser",
    "create_parser",
]
