from __future__ import annotations

from enum import Enum


class ParseStatus(Enum):
    NONE = "none"
    BASIC = "basic"
    FULL = "full"


class SmartStatus(Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    UNSUPPORTED = "unsupported"

    @property
    def displayable_name(self) -> str:
        return self.value.capitalize()


class SelfTestSupportStatus(Enum):
    UNKNOWN = "unknown"
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"


class AodcStatus(Enum):
    """Automatic offline data collection."""

    ENABLED = "enabled"
    DISABLED = "disabled"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


def smart_status(enabled: bool | None, supported: bool | None) -> SmartStatus:
    if enabled is True:
        return SmartStatus.ENABLED
    if enabled is False:
        # disabled, maybe because it's unsupported
        if supported is False:
            return SmartStatus.UNSUPPORTED
        return SmartStatus.DISABLED
    # state unknown; if supported, give the user a chance to try enabling it
    if supported is True:
        return SmartStatus.DISABLED
    return SmartStatus.UNSUPPORTED


def self_test_support(
    parse_status: ParseStatus, status: SmartStatus, has_selftest_log: bool
) -> SelfTestSupportStatus:
    if parse_status == ParseStatus.FULL:
        return SelfTestSupportStatus.SUPPORTED if has_selftest_log else SelfTestSupportStatus.UNSUPPORTED
    if parse_status == ParseStatus.BASIC:
        if status == SmartStatus.ENABLED:
            return SelfTestSupportStatus.UNKNOWN
        return SelfTestSupportStatus.UNSUPPORTED
    return SelfTestSupportStatus.UNKNOWN


def aodc_status(
    status: SmartStatus, supported: bool | None, enabled: bool | None
) -> AodcStatus:
    # SMART-disabled drives are known to print garbage here.
    if status != SmartStatus.ENABLED:
        return AodcStatus.UNSUPPORTED
    if not supported:
        return AodcStatus.UNSUPPORTED
    if enabled is None:
        return AodcStatus.UNKNOWN
    return AodcStatus.ENABLED if enabled else AodcStatus.DISABLED
