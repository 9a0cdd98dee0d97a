from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
import time
from typing import Any, Sequence

from smart_tap.config import AppConfig, ConfiguredDeviceOptions, load_config
from smart_tap.device import StorageDevice
from smart_tap.errors import StorageDeviceError
from smart_tap.executor import SmartctlExecutor
from smart_tap.logging_utils import configure_logging, resolve_log_level
from smart_tap.mqtt_client import StatusPublisher
from smart_tap.output_format import OutputFormat, detect_output_format
from smart_tap.scanner import detect_devices


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="smart-tap SMART data reader")
    parser.add_argument(
        "devices",
        nargs="*",
        metavar="DEVICE",
        help="Device to query, e.g. /dev/sda",
    )
    parser.add_argument(
        "--config",
        help="Path to CFG configuration file (defaults are used when omitted)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument(
        "--scan",
        action="store_true",
        help="Query every drive found on this system",
    )
    parser.add_argument(
        "--type",
        dest="type_arg",
        default="",
        metavar="TYPE",
        help="smartctl device type (-d) for the given devices",
    )
    parser.add_argument(
        "--full",
        action="store_true",
        help="Read the full SMART data after the basic information",
    )
    parser.add_argument(
        "--load",
        action="append",
        default=[],
        metavar="FILE",
        help="Parse a saved smartctl output instead of querying a device",
    )
    parser.add_argument(
        "--smart",
        choices=["on", "off"],
        help="Enable or disable SMART before reading",
    )
    parser.add_argument(
        "--aodc",
        choices=["on", "off"],
        help="Enable or disable automatic offline data collection before reading",
    )
    parser.add_argument(
        "--save-output",
        action="store_true",
        help="Save the smartctl output into the configured output directory",
    )
    parser.add_argument(
        "--dump-json",
        help="Write all snapshots to a JSON file",
    )
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Publish snapshots to the configured MQTT broker",
    )
    return parser


def build_devices(args: argparse.Namespace, config: AppConfig) -> list[StorageDevice]:
    option_provider = ConfiguredDeviceOptions(config.smartctl.device_options)
    formats = config.parser.formats()
    paths = list(args.devices)
    if args.scan:
        paths.extend(path for path in detect_devices() if path not in paths)

    devices = []
    for path in paths:
        device = StorageDevice(
            path,
            args.type_arg,
            option_provider=option_provider,
            formats=formats,
        )
        device.is_manually_added = not args.scan or path in args.devices
        devices.append(device)
    devices.extend(StorageDevice.from_file(path) for path in args.load)
    return devices


def save_output(device: StorageDevice, config: AppConfig) -> Path | None:
    output = device.full_output or device.basic_output
    if not output:
        return None
    extension = ".json" if detect_output_format(output) == OutputFormat.JSON else ".txt"
    directory = Path(config.output.directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{device.get_save_filename(config.output.filename_format)}{extension}"
    path.write_text(output + "\n", encoding="utf-8")
    return path


def process_device(
    device: StorageDevice,
    executor: SmartctlExecutor,
    args: argparse.Namespace,
    config: AppConfig,
) -> bool:
    logger = logging.getLogger("smart_tap")
    try:
        if device.is_virtual:
            device.parse_any_data_for_virtual()
            return True

        device.fetch_basic_data_and_parse(executor)
        if args.smart or args.aodc:
            if args.smart:
                device.set_smart_enabled(args.smart == "on", executor)
            if args.aodc:
                device.set_aodc_enabled(args.aodc == "on", executor)
            # Pick up the new state.
            device.fetch_basic_data_and_parse(executor)
        if args.full:
            device.fetch_full_data_and_parse(executor)
    except StorageDeviceError as exc:
        logger.error("%s: %s", device.device_with_type, exc)
        return False

    if args.save_output:
        path = save_output(device, config)
        if path is not None:
            logger.info("Saved smartctl output of %s to %s", device.device_with_type, path)
    return True


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("smart_tap")
    config = load_config(args.config) if args.config else AppConfig.default()
    pretty_print = level <= logging.DEBUG

    devices = build_devices(args, config)
    if not devices:
        parser.error("no devices given; pass DEVICE, --scan or --load")

    publisher = None
    if args.publish:
        if config.mqtt is None:
            logger.error("Publishing requested but the configuration has no [mqtt] section.")
            return 1
        publisher = StatusPublisher(config.mqtt)
        publisher.connect()
        # Wait briefly for connection to establish
        time.sleep(0.5)
        for device in devices:
            device.add_listener(publisher.on_device_changed)

    executor = SmartctlExecutor(
        config.smartctl.binary,
        config.smartctl.options,
        config.smartctl.timeout_s,
    )

    snapshots: list[dict[str, Any]] = []
    failed = False
    try:
        for device in devices:
            if not process_device(device, executor, args, config):
                failed = True
            snapshot = device.snapshot()
            snapshots.append(snapshot)
            print(json.dumps(snapshot, indent=2) if pretty_print else json.dumps(snapshot))
    finally:
        if publisher is not None:
            # Wait for message delivery
            time.sleep(0.5)
            publisher.disconnect()

    if args.dump_json:
        with open(args.dump_json, "w", encoding="utf-8") as handle:
            json.dump(snapshots, handle, indent=2)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
