from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import re
import subprocess
from typing import Sequence

from smart_tap.logging_utils import TRACE_LEVEL

_PERMISSION_DENIED_RE = re.compile(r"Smartctl open device.+Permission denied", re.IGNORECASE)

# smartctl exit status bits. Bits 2-7 describe the drive, not the run.
EXIT_COMMAND_LINE_DID_NOT_PARSE = 0x01
EXIT_DEVICE_OPEN_FAILED = 0x02
_EXECUTION_FAILURE_BITS = EXIT_COMMAND_LINE_DID_NOT_PARSE | EXIT_DEVICE_OPEN_FAILED

_EXIT_STATUS_MESSAGES = {
    0x01: "Command line did not parse.",
    0x02: "Device open failed, or device did not return an IDENTIFY DEVICE structure.",
    0x04: "Some SMART or other ATA command to the disk failed, or there was a checksum error in a SMART data structure.",
    0x08: "SMART status check returned \"DISK FAILING\".",
    0x10: "We found prefail attributes <= threshold.",
    0x20: "SMART status check returned \"DISK OK\" but some usage or prefail attributes have been <= threshold at some time in the past.",
    0x40: "The device error log contains records of errors.",
    0x80: "The device self-test log contains records of errors.",
}


class ExecutionOutcome(Enum):
    OK = "ok"
    PERMISSION_DENIED = "permission_denied"
    FAILED = "failed"


@dataclass(frozen=True)
class ExecutionResult:
    stdout: str
    outcome: ExecutionOutcome
    message: str = ""
    exit_status: int | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == ExecutionOutcome.OK


def describe_exit_status(exit_status: int) -> list[str]:
    return [message for bit, message in _EXIT_STATUS_MESSAGES.items() if exit_status & bit]


class SmartctlExecutor:
    """Runs smartctl for one device and classifies how the run went."""

    def __init__(
        self,
        binary: str = "smartctl",
        default_options: Sequence[str] = (),
        timeout_s: float | None = None,
    ) -> None:
        self.binary = binary
        self.default_options = list(default_options)
        self.timeout_s = timeout_s
        self.logger = logging.getLogger(self.__class__.__name__)

    def build_command(self, device: str, options: Sequence[str]) -> list[str]:
        return [self.binary, *self.default_options, *options, device]

    def run(self, device: str, options: Sequence[str]) -> ExecutionResult:
        command = self.build_command(device, options)
        self.logger.debug("Executing: %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                check=False,
                text=True,
                capture_output=True,
                timeout=self.timeout_s,
            )
        except FileNotFoundError:
            self.logger.debug("Command not found: %s", command[0])
            return ExecutionResult("", ExecutionOutcome.FAILED, f"Cannot execute {command[0]}: not found.")
        except subprocess.TimeoutExpired as exc:
            self.logger.warning("smartctl timed out after %s seconds on %s", exc.timeout, device)
            stdout = exc.stdout if isinstance(exc.stdout, str) else ""
            return ExecutionResult(
                normalize_output(stdout), ExecutionOutcome.FAILED, "smartctl timed out."
            )

        stdout = normalize_output(result.stdout or "")
        if stdout:
            self.logger.log(TRACE_LEVEL, "stdout: %s", stdout)
        if result.stderr:
            self.logger.log(TRACE_LEVEL, "stderr: %s", result.stderr.strip())

        if result.returncode & _EXECUTION_FAILURE_BITS or result.returncode < 0:
            self.logger.debug("Command failed (%s): %s", result.returncode, " ".join(command))
            if _PERMISSION_DENIED_RE.search(stdout):
                return ExecutionResult(
                    stdout,
                    ExecutionOutcome.PERMISSION_DENIED,
                    "Permission denied while opening device.",
                    result.returncode,
                )
            message = " ".join(describe_exit_status(result.returncode)) or (
                f"smartctl exited with status {result.returncode}."
            )
            return ExecutionResult(stdout, ExecutionOutcome.FAILED, message, result.returncode)

        if result.returncode:
            self.logger.debug(
                "smartctl exit status %s: %s",
                result.returncode,
                " ".join(describe_exit_status(result.returncode)),
            )
        if not stdout:
            self.logger.error("Smartctl returned an empty output.")
            return ExecutionResult(
                "", ExecutionOutcome.FAILED, "Smartctl returned an empty output.", result.returncode
            )
        return ExecutionResult(stdout, ExecutionOutcome.OK, "", result.returncode)


def normalize_output(output: str) -> str:
    return output.replace("\r\n", "\n").replace("\r", "\n").strip()
