"""Stable public API for building tooling on top of lh2ctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from lh2ctl.core import registry
from lh2ctl.core.errors import (
    AdapterNotFoundError,
    BluetoothError,
    CharacteristicNotFoundError,
    ConnectError,
    DisconnectError,
    DiscoveryTimeoutError,
    InvalidAddressError,
    Lh2ctlError,
    RegistryCorruptError,
    RegistryEmptyError,
    RegistryError,
    RegistryInvalidError,
    RegistryMissingError,
    RegistryWriteError,
    ServiceNotFoundError,
    ServiceResolutionTimeoutError,
    WriteError,
)
from lh2ctl.core.model import (
    POWER_CHARACTERISTIC_UUID,
    POWER_SERVICE_UUID,
    LighthouseAddress,
    OrchestratorConfig,
    PowerState,
    RunState,
    encode_power_state,
    parse_addresses,
)
from lh2ctl.core.service import PowerStateOrchestrator
from lh2ctl.transports.base import BluetoothStack

__all__ = [
    "Lh2ctlError",
    "InvalidAddressError",
    "BluetoothError",
    "AdapterNotFoundError",
    "DiscoveryTimeoutError",
    "ConnectError",
    "ServiceResolutionTimeoutError",
    "ServiceNotFoundError",
    "CharacteristicNotFoundError",
    "WriteError",
    "DisconnectError",
    "RegistryError",
    "RegistryMissingError",
    "RegistryCorruptError",
    "RegistryInvalidError",
    "RegistryEmptyError",
    "RegistryWriteError",
    "POWER_SERVICE_UUID",
    "POWER_CHARACTERISTIC_UUID",
    "LighthouseAddress",
    "OrchestratorConfig",
    "PowerState",
    "RunState",
    "encode_power_state",
    "PowerStateOrchestrator",
    "Client",
]


class Client:
    """Public client for switching lighthouses on and off.

    Wraps the registry and a `PowerStateOrchestrator` behind synchronous
    calls for scripts and other tools. Each `set_power_state` call is one
    complete run on a fresh event loop.
    """

    def __init__(
        self,
        *,
        bluetooth: BluetoothStack | None = None,
        config: OrchestratorConfig | None = None,
        logger: logging.Logger | None = None,
        registry_file: Path | None = None,
    ) -> None:
        self._orchestrator = PowerStateOrchestrator(bluetooth, config=config, logger=logger)
        self._registry_file = registry_file

    @property
    def last_error(self) -> Lh2ctlError | None:
        return self._orchestrator.last_error

    def registered_addresses(self) -> list[LighthouseAddress]:
        return registry.load_registry(self._registry_file)

    def register(self, addresses: Sequence[str]) -> list[LighthouseAddress]:
        return registry.register(parse_addresses(addresses), self._registry_file)

    def set_power_state(
        self,
        state: PowerState | str,
        addresses: Sequence[str] | None = None,
    ) -> bool:
        """Set the power state of ``addresses``, or of every registered lighthouse."""
        targets = parse_addresses(addresses) if addresses else self.registered_addresses()
        return asyncio.run(self._orchestrator.set_power_state(PowerState(state), targets))
