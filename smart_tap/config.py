from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
import configparser
import re
import shlex

from smart_tap.output_format import DEFAULT_FORMATS, OutputFormat, ParserType

_DEVICE_OPTION_RE = re.compile(r"^(?P<pattern>.+?)(?:::(?P<type>[\w,+-]+))?:\s*(?P<options>.*)$")


@dataclass(frozen=True)
class DeviceOptionRule:
    pattern: str
    options: list[str]
    type_arg: str | None = None

    def matches(self, device: str, type_arg: str) -> bool:
        if self.type_arg is not None and self.type_arg != type_arg:
            return False
        return fnmatch(device, self.pattern)


@dataclass(frozen=True)
class SmartctlConfig:
    binary: str = "smartctl"
    options: list[str] = field(default_factory=list)
    timeout_s: float | None = None
    device_options: list[DeviceOptionRule] = field(default_factory=list)


@dataclass(frozen=True)
class ParserConfig:
    basic_format: OutputFormat = DEFAULT_FORMATS[ParserType.BASIC]
    ata_format: OutputFormat = DEFAULT_FORMATS[ParserType.ATA]
    nvme_format: OutputFormat = DEFAULT_FORMATS[ParserType.NVME]
    scsi_format: OutputFormat = DEFAULT_FORMATS[ParserType.SCSI]

    def formats(self) -> dict[ParserType, OutputFormat]:
        return {
            ParserType.BASIC: self.basic_format,
            ParserType.ATA: self.ata_format,
            ParserType.NVME: self.nvme_format,
            ParserType.SCSI: self.scsi_format,
        }


@dataclass(frozen=True)
class OutputConfig:
    filename_format: str = "{serial}_{model}_{date}"
    directory: str = "."


@dataclass(frozen=True)
class MqttConfig:
    host: str
    port: int
    base_topic: str
    discovery_topic: str
    client_id: str
    username: str | None
    password: str | None
    qos: int
    retain: bool
    tls_enabled: bool
    ca_cert: str | None
    keepalive: int


@dataclass(frozen=True)
class AppConfig:
    smartctl: SmartctlConfig = field(default_factory=SmartctlConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    mqtt: MqttConfig | None = None

    @classmethod
    def default(cls) -> AppConfig:
        return cls()


class ConfiguredDeviceOptions:
    """Device option provider backed by the ``device_options`` setting."""

    def __init__(self, rules: list[DeviceOptionRule]) -> None:
        self.rules = rules

    def __call__(self, device: str, type_arg: str) -> list[str]:
        options: list[str] = []
        for rule in self.rules:
            if rule.matches(device, type_arg):
                options.extend(rule.options)
        return options


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def _get_format(value: str | None, fallback: OutputFormat) -> OutputFormat:
    value = _get_optional(value)
    if value is None:
        return fallback
    try:
        return OutputFormat(value.lower())
    except ValueError:
        raise ValueError(f"Unknown output format '{value}', expected json or text") from None


def parse_device_options(value: str | None) -> list[DeviceOptionRule]:
    """Parse ``pattern[::type]: options; ...`` entries."""
    rules: list[DeviceOptionRule] = []
    if value is None:
        return rules
    for entry in value.split(";"):
        entry = entry.strip()
        if not entry:
            continue
        match = _DEVICE_OPTION_RE.match(entry)
        if match is None:
            raise ValueError(f"Invalid device_options entry: {entry}")
        rules.append(
            DeviceOptionRule(
                pattern=match.group("pattern").strip(),
                options=shlex.split(match.group("options")),
                type_arg=match.group("type"),
            )
        )
    return rules


def load_config(path: str | Path) -> AppConfig:
    parser = configparser.ConfigParser(inline_comment_prefixes=("#",), interpolation=None)
    read_files = parser.read(path)
    if not read_files:
        raise FileNotFoundError(f"Config file not found: {path}")

    timeout = _get_optional(parser.get("smartctl", "timeout_s", fallback=None))
    smartctl = SmartctlConfig(
        binary=parser.get("smartctl", "binary", fallback="smartctl"),
        options=shlex.split(parser.get("smartctl", "options", fallback="")),
        timeout_s=float(timeout) if timeout is not None else None,
        device_options=parse_device_options(
            parser.get("smartctl", "device_options", fallback=None)
        ),
    )

    defaults = ParserConfig()
    parser_config = ParserConfig(
        basic_format=_get_format(parser.get("parser", "basic_format", fallback=None), defaults.basic_format),
        ata_format=_get_format(parser.get("parser", "ata_format", fallback=None), defaults.ata_format),
        nvme_format=_get_format(parser.get("parser", "nvme_format", fallback=None), defaults.nvme_format),
        scsi_format=_get_format(parser.get("parser", "scsi_format", fallback=None), defaults.scsi_format),
    )

    output = OutputConfig(
        filename_format=parser.get("output", "filename_format", fallback=OutputConfig.filename_format),
        directory=parser.get("output", "directory", fallback=OutputConfig.directory),
    )

    mqtt = None
    if parser.has_section("mqtt"):
        mqtt_section = parser["mqtt"]
        mqtt = MqttConfig(
            host=mqtt_section.get("host", "localhost"),
            port=mqtt_section.getint("port", 1883),
            base_topic=mqtt_section.get("base_topic", "smart-tap"),
            discovery_topic=mqtt_section.get("discovery_topic", "homeassistant"),
            client_id=mqtt_section.get("client_id", "smart-tap"),
            username=_get_optional(mqtt_section.get("username")),
            password=_get_optional(mqtt_section.get("password")),
            qos=mqtt_section.getint("qos", 0),
            retain=mqtt_section.getboolean("retain", False),
            tls_enabled=mqtt_section.getboolean("tls", False),
            ca_cert=_get_optional(mqtt_section.get("ca_cert")),
            keepalive=mqtt_section.getint("keepalive", 60),
        )

    return AppConfig(smartctl=smartctl, parser=parser_config, output=output, mqtt=mqtt)
