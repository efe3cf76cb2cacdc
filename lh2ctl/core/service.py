"""Power-state orchestration used by the CLI and the public API."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from lh2ctl.core.connection import DeviceConnector
from lh2ctl.core.discovery import DeviceDiscoverer
from lh2ctl.core.errors import BluetoothError, Lh2ctlError, WriteError
from lh2ctl.core.gatt import CharacteristicResolver
from lh2ctl.core.model import (
    DiscoveredDevice,
    LighthouseAddress,
    OrchestratorConfig,
    PowerState,
    RunState,
    encode_power_state,
)
from lh2ctl.transports.base import BluetoothStack

LOGGER = logging.getLogger(__name__)


class PowerStateOrchestrator:
    """Discover, connect, write and disconnect a set of lighthouses.

    One call to `set_power_state` is one run. Devices are handled strictly
    in the order discovery found them, and every connected device is
    disconnected before the call returns, whatever the outcome.
    """

    def __init__(
        self,
        bluetooth: BluetoothStack | None = None,
        *,
        config: OrchestratorConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or OrchestratorConfig()
        if bluetooth is None:
            from lh2ctl.transports.ble_gatt import BleakBluetoothStack

            # bleak resolves services inside connect(), so the resolve timeout
            # becomes its connect timeout and expiry surfaces as ConnectError.
            bluetooth = BleakBluetoothStack(connect_timeout_s=self.config.resolve_timeout_s)
        self.logger = logger or LOGGER
        self.discoverer = DeviceDiscoverer(bluetooth, logger=self.logger)
        self.connector = DeviceConnector(logger=self.logger)
        self.resolver = CharacteristicResolver(
            service_uuid=self.config.service_uuid,
            characteristic_uuid=self.config.characteristic_uuid,
            logger=self.logger,
        )
        self.state = RunState.IDLE
        self.last_error: Lh2ctlError | None = None

    async def set_power_state(
        self,
        state: PowerState,
        addresses: Sequence[LighthouseAddress],
    ) -> bool:
        self.state = RunState.IDLE
        self.last_error = None
        try:
            await self._run(PowerState(state), addresses)
        except BluetoothError as exc:
            self.state = RunState.FAILED
            self.last_error = exc
            self.logger.error("%s", exc)
            return False
        except BaseException:
            self.state = RunState.FAILED
            raise
        self.state = RunState.SUCCEEDED
        return True

    async def _run(self, state: PowerState, addresses: Sequence[LighthouseAddress]) -> None:
        self.state = RunState.DISCOVERING
        devices = await self.discoverer.discover(addresses, timeout_s=self.config.discovery_timeout_s)

        self.state = RunState.CONNECTING
        async with self.connector.connect_all(devices, timeout_s=self.config.resolve_timeout_s) as connected:
            try:
                self.logger.debug(
                    "Changing power state to %s for the following lighthouses: %s",
                    state.value,
                    ", ".join(str(address) for address in addresses),
                )
                for device in connected:
                    await self._write(device, state)
                self.logger.debug("Finished setting the power states of all devices")
            finally:
                self.state = RunState.DISCONNECTING

    async def _write(self, device: DiscoveredDevice, state: PowerState) -> None:
        self.state = RunState.RESOLVING
        characteristic = await self.resolver.resolve_writable(device)

        self.state = RunState.WRITING
        self.logger.debug(
            "Writing to power characteristic of %s to %s...",
            device.address,
            state.value,
        )
        try:
            await characteristic.write_value(encode_power_state(state), {})
        except Lh2ctlError:
            raise
        except Exception as exc:
            raise WriteError(f"Failed to write power state to {device.address} ({device.path}): {exc}") from exc
