from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import re
import threading
from typing import Any, Callable, Mapping, Sequence

from smart_tap.classifier import device_base_name, refine
from smart_tap.detected_type import DetectedType
from smart_tap.errors import (
    CannotExecuteOnVirtualError,
    CommandFailedError,
    CommandUnknownError,
    ExecutionError,
    ParseError,
    PermissionDeniedError,
    TestRunningError,
)
from smart_tap.executor import ExecutionOutcome, SmartctlExecutor, normalize_output
from smart_tap.output_format import (
    OutputFormat,
    ParserType,
    default_format,
    default_parser_type,
    detect_output_format_or_text,
)
from smart_tap.parsers import (
    AODC_ENABLED_PATH,
    AODC_SUPPORTED_PATH,
    SmartctlParser,
    create_parser,
)
from smart_tap.processor import process_properties
from smart_tap.properties import PropertyRepository, PropertySection, StorageProperty
from smart_tap.status import (
    AodcStatus,
    ParseStatus,
    SelfTestSupportStatus,
    SmartStatus,
    aodc_status,
    self_test_support,
    smart_status,
)

SNAPSHOT_SCHEMA_NAME = "smart-tap-device"
SNAPSHOT_SCHEMA_VERSION = 1

DeviceOptionProvider = Callable[[str, str], Sequence[str]]
ChangeListener = Callable[["StorageDevice"], None]

# We don't use --all, it may produce unrelated output (tests, etc.).
BASIC_OPTIONS = ["--info", "--health", "--capabilities"]

# Everything -x covers for ATA, spelled out so that additions to -x in newer
# smartctl versions don't change what we parse.
ATA_FULL_OPTIONS = [
    "--health",
    "--info",
    "--get=all",
    "--capabilities",
    "--attributes",
    "--format=brief",
    "--log=xerror,50,error",
    "--log=xselftest,50,selftest",
    "--log=selective",
    "--log=directory",
    "--log=scttemp",
    "--log=scterc",
    "--log=devstat",
    "--log=sataphy",
]

# Same as --health --info --capabilities --attributes --log=error --log=selftest (and more for SCSI)
XALL_OPTIONS = ["--xall"]

# "o" keeps the original text output inside the JSON document.
JSON_OPTION = "--json=o"

MODEL_PATHS = ("model_name", "scsi_model_name")  # the latter for USB flash
FAMILY_PATHS = ("model_family", "scsi_vendor")
SIZE_PATHS = ("user_capacity/bytes/_short", "user_capacity/bytes")

_FLAGS = re.IGNORECASE | re.MULTILINE
_NEEDS_EXPLICIT_TYPE_RE = re.compile(r"specify device type with the -d option", _FLAGS)
# Matched at line start, these phrases also appear inside other sentences.
_SMART_TOGGLED_RE = re.compile(r"^SMART (?:Enabled|Disabled)", _FLAGS)
_AODC_TOGGLED_RE = re.compile(r"^SMART Automatic Offline Testing (?:Enabled|Disabled)", _FLAGS)
_MANDATORY_COMMAND_FAILED_RE = re.compile(r"^A mandatory SMART command failed", _FLAGS)

_UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|\x00-\x1f\s]+')


def make_filename_safe(name: str) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", name.strip()).strip("_.")


def _bool_value(prop: StorageProperty | None) -> bool | None:
    return bool(prop.value) if prop is not None else None


def _str_value(prop: StorageProperty | None) -> str | None:
    return str(prop.value) if prop is not None else None


class StorageDevice:
    """One physical drive (or a saved smartctl output) and what we know about it.

    Fetch, parse and toggle calls hold the device lock for their whole
    duration and are refused while a self-test is running. The property
    repository is only ever replaced as a whole, together with everything
    derived from it, and listeners are told once per replacement.
    """

    def __init__(
        self,
        device: str,
        type_arg: str = "",
        *,
        extra_args: Sequence[str] = (),
        option_provider: DeviceOptionProvider | None = None,
        formats: Mapping[ParserType, OutputFormat] | None = None,
        virtual_file: str | Path | None = None,
    ) -> None:
        self.device = device
        self.type_arg = type_arg
        self.extra_args = list(extra_args)
        self.option_provider = option_provider
        self.formats = dict(formats) if formats else None
        self.virtual_file = Path(virtual_file) if virtual_file is not None else None
        self.drive_letters: dict[str, str] = {}
        self.is_manually_added = False

        self.basic_output = ""
        self.full_output = ""

        self.detected_type = DetectedType.UNKNOWN
        self.parse_status = ParseStatus.NONE
        self.property_repository = PropertyRepository()

        self.smart_supported: bool | None = None
        self.smart_enabled: bool | None = None
        self.model_name: str | None = None
        self.family_name: str | None = None
        self.serial_number: str | None = None
        self.size: str | None = None
        self._cache: dict[str, Any] = {}

        self._test_is_active = False
        self._lock = threading.RLock()
        self._listeners: list[ChangeListener] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def virtual(cls, virtual_file: str | Path, output: str = "") -> StorageDevice:
        device = cls("", virtual_file=virtual_file)
        device.set_full_output(output)
        return device

    @classmethod
    def from_file(cls, path: str | Path) -> StorageDevice:
        """Virtual device holding a previously saved smartctl output."""
        content = Path(path).read_text(encoding="utf-8", errors="replace")
        return cls.virtual(path, content)

    # Identity

    @property
    def is_virtual(self) -> bool:
        return self.virtual_file is not None

    @property
    def device_base(self) -> str:
        if self.is_virtual:
            return ""
        return device_base_name(self.device)

    @property
    def virtual_filename(self) -> str:
        return self.virtual_file.name if self.virtual_file is not None else ""

    @property
    def device_with_type(self) -> str:
        if self.is_virtual:
            return f"Virtual ({self.virtual_filename or '[empty]'})"
        if self.type_arg:
            return f"{self.device} ({self.type_arg})"
        return self.device

    def format_drive_letters(self, with_volnames: bool = False) -> str:
        decorated = []
        for letter, volname in sorted(self.drive_letters.items()):
            entry = f"{letter.upper()}:"
            if with_volnames and volname:
                entry = f"{entry} ({volname})"
            decorated.append(entry)
        return ", ".join(decorated)

    def get_device_options(self) -> list[str]:
        """Options placed before the command options; a later -d overrides an earlier one."""
        if self.is_virtual:
            self.logger.warning("Cannot get device options of a virtual device.")
            return []
        args: list[str] = []
        if self.type_arg:
            args.extend(["-d", self.type_arg])
        args.extend(self.extra_args)
        if self.option_provider is not None:
            args.extend(self.option_provider(self.device, self.type_arg))
        return args

    def get_save_filename(self, filename_format: str, now: datetime | None = None) -> str:
        now = now or datetime.now()
        name = (
            filename_format.replace("{serial}", self.serial_number or "")
            .replace("{model}", self.model_name or "")
            .replace("{date}", now.strftime("%Y-%m-%d_%H%M"))
        )
        return make_filename_safe(name)

    # Outputs

    def set_basic_output(self, output: str) -> None:
        self.basic_output = normalize_output(output)

    def set_full_output(self, output: str) -> None:
        self.full_output = normalize_output(output)

    def clear_outputs(self) -> None:
        self.basic_output = ""
        self.full_output = ""

    def clear_parse_results(self) -> None:
        with self._lock:
            self.parse_status = ParseStatus.NONE
            self.property_repository = PropertyRepository()
            self._invalidate_caches()

    # Listeners

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit_changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # Self-test flag

    @property
    def test_is_active(self) -> bool:
        return self._test_is_active

    def set_test_is_active(self, active: bool) -> None:
        with self._lock:
            changed = self._test_is_active != active
            self._test_is_active = active
            if changed:
                # so that everybody stops any test-aborting operations
                self._emit_changed()

    def _check_test_not_active(self) -> None:
        if self._test_is_active:
            raise TestRunningError()

    def _check_not_virtual(self) -> None:
        if self.is_virtual:
            self.logger.warning("Cannot execute smartctl on a virtual device.")
            raise CannotExecuteOnVirtualError()

    # Fetch / parse

    def fetch_basic_data_and_parse(self, executor: SmartctlExecutor) -> None:
        """Run the info/health/capabilities probe and parse it.

        When smartctl cannot auto-detect the device type, the probe is
        repeated once with ``-d scsi`` to get at least some information.
        """
        with self._lock:
            for attempt in range(2):
                self._check_test_not_active()
                # Saved output stays loaded.
                self._check_not_virtual()
                self.clear_parse_results()
                self.clear_outputs()

                options = list(BASIC_OPTIONS)
                if default_format(ParserType.BASIC, self.formats) == OutputFormat.JSON:
                    options.append(JSON_OPTION)

                output = ""
                error: ExecutionError | None = None
                try:
                    output = self._execute(executor, options, check_type=True)
                except ExecutionError as exc:
                    error = exc

                # Clean runs count too, same as generic execution errors.
                if (
                    attempt == 0
                    and self.detected_type == DetectedType.NEEDS_EXPLICIT_TYPE
                    and not self.type_arg
                ):
                    self.logger.info(
                        "The device seems to be of different type than auto-detected, trying again with scsi."
                    )
                    self.type_arg = "scsi"
                    self.detected_type = DetectedType.BASIC_SCSI
                    continue

                if error is not None:
                    raise error
                self.set_basic_output(output)
                self.parse_basic_data()
                return

    def parse_basic_data(self) -> None:
        with self._lock:
            self._check_test_not_active()
            output_format = detect_output_format_or_text(self.basic_output)
            parser = create_parser(ParserType.BASIC, output_format)
            repository = self._run_parser(parser, self.basic_output)

            detected = refine(self.detected_type, repository, self.device)
            self.detected_type = detected
            self._replace_repository(process_properties(repository, detected))
            self.logger.debug(
                "Drive %s set to be %s device.", self.device_with_type, detected.displayable_name
            )
            self._emit_changed()

    def fetch_full_data_and_parse(self, executor: SmartctlExecutor) -> None:
        with self._lock:
            self._check_test_not_active()
            if not self.detected_type.is_resolved:
                raise ValueError(
                    f"Device type of {self.device_with_type} is not known; fetch basic data first."
                )

            if self.detected_type.is_ata:
                options = list(ATA_FULL_OPTIONS)
            else:
                options = list(XALL_OPTIONS)

            parser_type = default_parser_type(self.detected_type)
            output_format = default_format(parser_type, self.formats)
            if output_format == OutputFormat.JSON:
                options.append(JSON_OPTION)

            self.set_full_output(self._execute(executor, options))
            self.parse_full_data(parser_type, output_format)

    def parse_full_data(self, parser_type: ParserType, output_format: OutputFormat) -> None:
        with self._lock:
            self._check_test_not_active()
            parser = create_parser(parser_type, output_format)
            repository = self._run_parser(parser, self.full_output)

            detected = refine(self.detected_type, repository, self.device)
            self.detected_type = detected
            status = ParseStatus.BASIC if parser_type == ParserType.BASIC else ParseStatus.FULL
            self._replace_repository(process_properties(repository, detected), status)
            self._emit_changed()

    def parse_any_data_for_virtual(self) -> None:
        """Parse a loaded output without running anything.

        The basic parser seeds the identity fields and the device type; a
        protocol-specific parser is then tried, and if it fails the basic
        result stays.
        """
        with self._lock:
            self._check_test_not_active()
            output_format = detect_output_format_or_text(self.full_output)
            basic_parser = create_parser(ParserType.BASIC, output_format)
            basic_repository = self._run_parser(basic_parser, self.full_output)

            detected = refine(self.detected_type, basic_repository, self.device)
            self.detected_type = detected
            self._replace_repository(
                process_properties(basic_repository, detected), ParseStatus.BASIC
            )

            parser_type = default_parser_type(detected)
            if parser_type != ParserType.BASIC:
                try:
                    parser = create_parser(parser_type, output_format)
                    repository = self._run_parser(parser, self.full_output)
                except ParseError as exc:
                    self.logger.info(
                        "Only basic data available for %s: %s", self.device_with_type, exc
                    )
                else:
                    self._replace_repository(
                        process_properties(repository, detected), ParseStatus.FULL
                    )

            self._emit_changed()

    def _run_parser(self, parser: SmartctlParser, output: str) -> PropertyRepository:
        try:
            return parser.parse(output)
        except ParseError as exc:
            raise ParseError(f"Cannot parse smartctl output: {exc}") from exc

    def _replace_repository(
        self, repository: PropertyRepository, parse_status: ParseStatus | None = None
    ) -> None:
        self._invalidate_caches()
        self.property_repository = repository
        self._read_common_properties()
        if parse_status is None:
            # A model field is a good indication whether there was any data at all.
            parse_status = ParseStatus.BASIC if self.model_name is not None else ParseStatus.NONE
        self.parse_status = parse_status

    def _invalidate_caches(self) -> None:
        self.smart_supported = None
        self.smart_enabled = None
        self.model_name = None
        self.family_name = None
        self.serial_number = None
        self.size = None
        self._cache.clear()

    def _read_common_properties(self) -> None:
        repo = self.property_repository
        self.smart_supported = _bool_value(repo.lookup("smart_support/available"))
        self.smart_enabled = _bool_value(repo.lookup("smart_support/enabled"))
        self.model_name = _str_value(repo.lookup_first(MODEL_PATHS))
        self.family_name = _str_value(repo.lookup_first(FAMILY_PATHS))
        self.serial_number = _str_value(repo.lookup("serial_number"))
        size = repo.lookup_first(SIZE_PATHS)
        self.size = size.readable_value if size is not None else None

    # Toggles

    def set_smart_enabled(self, enabled: bool, executor: SmartctlExecutor) -> None:
        """Switch SMART on or off (attribute autosave is switched on with it)."""
        # Output:
        #   SMART Enabled.
        #   SMART Attribute Autosave Enabled.
        # or
        #   SMART Disabled. Use option -s with argument 'on' to enable it.
        # or
        #   A mandatory SMART command failed: exiting. To continue, add one or more '-T permissive' options.
        with self._lock:
            self._check_test_not_active()
            if not enabled:
                options = ["--smart=off"]
            elif self.detected_type == DetectedType.NVME or self.detected_type.is_scsi_family:
                options = ["--smart=on"]
            else:
                options = ["--smart=on", "--saveauto=on"]
            output = self._execute(executor, options)
            _check_toggle_output(output, _SMART_TOGGLED_RE)

    def set_aodc_enabled(self, enabled: bool, executor: SmartctlExecutor) -> None:
        # Output: "SMART Automatic Offline Testing Enabled every four hours." or "... Disabled."
        with self._lock:
            self._check_test_not_active()
            options = ["--offlineauto=on" if enabled else "--offlineauto=off"]
            output = self._execute(executor, options)
            _check_toggle_output(output, _AODC_TOGGLED_RE)

    def _execute(
        self, executor: SmartctlExecutor, options: Sequence[str], check_type: bool = False
    ) -> str:
        # Not guarded by test_is_active: test code runs commands on a tested drive.
        self._check_not_virtual()

        result = executor.run(self.device, [*self.get_device_options(), *options])
        if result.outcome == ExecutionOutcome.PERMISSION_DENIED:
            raise PermissionDeniedError(result.message or PermissionDeniedError().args[0])
        if not result.ok:
            self.logger.warning("Smartctl binary did not execute cleanly.")
            # Matches JSON output too, --json=o embeds the text output.
            if (
                check_type
                and self.detected_type == DetectedType.UNKNOWN
                and _NEEDS_EXPLICIT_TYPE_RE.search(result.stdout)
            ):
                self.detected_type = DetectedType.NEEDS_EXPLICIT_TYPE
            raise ExecutionError(result.message or "smartctl did not execute cleanly.", result.stdout)
        return result.stdout

    # Derived status

    @property
    def smart_status(self) -> SmartStatus:
        return smart_status(self.smart_enabled, self.smart_supported)

    @property
    def smart_switch_supported(self) -> bool:
        # NVMe has no SMART on/off switch.
        return (
            not self.is_virtual
            and self.smart_status != SmartStatus.UNSUPPORTED
            and self.detected_type != DetectedType.NVME
        )

    @property
    def health_property(self) -> StorageProperty | None:
        with self._lock:
            health = self._cache.get("health")
            if health is None:
                health = self.property_repository.lookup(
                    "smart_status/passed", PropertySection.OVERALL_HEALTH
                )
                if health is not None:
                    self._cache["health"] = health
            return health

    @property
    def self_test_support(self) -> SelfTestSupportStatus:
        with self._lock:
            if "self_test" not in self._cache:
                self._cache["self_test"] = self_test_support(
                    self.parse_status,
                    self.smart_status,
                    self.property_repository.has_section(PropertySection.SELFTEST_LOG),
                )
            return self._cache["self_test"]

    @property
    def aodc_status(self) -> AodcStatus:
        with self._lock:
            if "aodc" not in self._cache:
                repo = self.property_repository
                status = aodc_status(
                    self.smart_status,
                    _bool_value(repo.lookup(AODC_SUPPORTED_PATH)),
                    _bool_value(repo.lookup(AODC_ENABLED_PATH)),
                )
                self.logger.debug("AODC status: %s", status.value)
                self._cache["aodc"] = status
            return self._cache["aodc"]

    def snapshot(self, include_properties: bool = False) -> dict[str, Any]:
        with self._lock:
            health = self.health_property
            payload: dict[str, Any] = {
                "schema": {"name": SNAPSHOT_SCHEMA_NAME, "version": SNAPSHOT_SCHEMA_VERSION},
                "ts": datetime.now(timezone.utc).isoformat(),
                "device": self.device or str(self.virtual_file or ""),
                "device_with_type": self.device_with_type,
                "virtual": self.is_virtual,
                "detected_type": self.detected_type.storable_name,
                "parse_status": self.parse_status.value,
                "model": self.model_name,
                "family": self.family_name,
                "serial": self.serial_number,
                "size": self.size,
                "smart_status": self.smart_status.value,
                "smart_switch_supported": self.smart_switch_supported,
                "self_test_support": self.self_test_support.value,
                "aodc_status": self.aodc_status.value,
                "health": (
                    {"passed": bool(health.value), "readable": health.readable_value}
                    if health is not None
                    else None
                ),
                "test_is_active": self.test_is_active,
            }
            if include_properties:
                payload["properties"] = [prop.to_dict() for prop in self.property_repository]
            return payload


def _check_toggle_output(output: str, success_re: re.Pattern[str]) -> None:
    if success_re.search(output):
        return
    if _MANDATORY_COMMAND_FAILED_RE.search(output):
        raise CommandFailedError()
    raise CommandUnknownError()
