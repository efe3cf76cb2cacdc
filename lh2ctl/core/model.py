"""Core data models used across the engine, registry, and CLI."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from lh2ctl.core.errors import InvalidAddressError

if TYPE_CHECKING:
    from lh2ctl.transports.base import Device

POWER_SERVICE_UUID = "00001523-1212-efde-1523-785feabcd124"
POWER_CHARACTERISTIC_UUID = "00001525-1212-efde-1523-785feabcd124"

DISCOVERY_TIMEOUT_S = 30.0
SERVICE_RESOLUTION_TIMEOUT_S = 10.0

_ADDRESS_RE = re.compile(r"^[0-9A-F]{2}(?::[0-9A-F]{2}){5}$")


class PowerState(str, Enum):
    OFF = "off"
    ON = "on"


_WIRE_VALUES = {
    PowerState.OFF: b"\x00",
    PowerState.ON: b"\x01",
}


def encode_power_state(state: PowerState) -> bytes:
    """Return the single byte written to the power characteristic."""
    return _WIRE_VALUES[PowerState(state)]


@dataclass(frozen=True, order=True)
class LighthouseAddress:
    value: str

    @classmethod
    def parse(cls, raw: str) -> LighthouseAddress:
        normalized = raw.strip().upper().replace("-", ":")
        if not _ADDRESS_RE.match(normalized):
            raise InvalidAddressError(f"'{raw}' is not a Bluetooth address (expected AA:BB:CC:DD:EE:FF)")
        return cls(normalized)

    @property
    def path_suffix(self) -> str:
        """Suffix of the adapter object path for this address, e.g. ``AA_BB_CC_DD_EE_FF``."""
        return self.value.replace(":", "_")

    def matches_path(self, path: str) -> bool:
        # The suffix must start the final path segment or follow an underscore
        # inside it, so a longer segment that merely ends the same way is rejected.
        segment = path.rstrip("/").rsplit("/", 1)[-1].upper()
        suffix = self.path_suffix
        if not segment.endswith(suffix):
            return False
        head = segment[: -len(suffix)]
        return head == "" or head.endswith("DEV_")

    def __str__(self) -> str:
        return self.value


def parse_addresses(raw_addresses: list[str] | tuple[str, ...]) -> list[LighthouseAddress]:
    """Parse and deduplicate addresses, keeping first-seen order."""
    addresses: list[LighthouseAddress] = []
    seen: set[LighthouseAddress] = set()
    for raw in raw_addresses:
        address = LighthouseAddress.parse(raw)
        if address in seen:
            continue
        seen.add(address)
        addresses.append(address)
    return addresses


@dataclass(frozen=True)
class DiscoveredDevice:
    address: LighthouseAddress
    handle: Device

    @property
    def path(self) -> str:
        return self.handle.path


@dataclass(frozen=True)
class OrchestratorConfig:
    discovery_timeout_s: float = DISCOVERY_TIMEOUT_S
    resolve_timeout_s: float = SERVICE_RESOLUTION_TIMEOUT_S
    service_uuid: str = POWER_SERVICE_UUID
    characteristic_uuid: str = POWER_CHARACTERISTIC_UUID


class RunState(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    CONNECTING = "connecting"
    RESOLVING = "resolving"
    WRITING = "writing"
    DISCONNECTING = "disconnecting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
