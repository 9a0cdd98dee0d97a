from __future__ import annotations


class StorageDeviceError(Exception):
    """Base class for failures reported by device operations."""


class TestRunningError(StorageDeviceError):
    def __init__(self, message: str = "A test is currently being performed on this drive.") -> None:
        super().__init__(message)


class CannotExecuteOnVirtualError(StorageDeviceError):
    def __init__(self, message: str = "Cannot execute smartctl on a virtual device.") -> None:
        super().__init__(message)


class ExecutionError(StorageDeviceError):
    """smartctl did not run cleanly. ``output`` holds whatever stdout was captured."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class PermissionDeniedError(StorageDeviceError):
    def __init__(self, message: str = "Permission denied while opening device.") -> None:
        super().__init__(message)


class CommandFailedError(StorageDeviceError):
    def __init__(self, message: str = "Mandatory SMART command failed.") -> None:
        super().__init__(message)


class CommandUnknownError(StorageDeviceError):
    def __init__(self, message: str = "Unknown error occurred.") -> None:
        super().__init__(message)


class ParseError(StorageDeviceError):
    pass
