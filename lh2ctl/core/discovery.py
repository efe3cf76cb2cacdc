"""Scan for the requested lighthouses by address."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from contextlib import aclosing

from lh2ctl.core.errors import AdapterNotFoundError, DiscoveryTimeoutError
from lh2ctl.core.model import DISCOVERY_TIMEOUT_S, DiscoveredDevice, LighthouseAddress
from lh2ctl.transports.base import Adapter, BluetoothStack

LOGGER = logging.getLogger(__name__)


class DeviceDiscoverer:
    def __init__(self, bluetooth: BluetoothStack, *, logger: logging.Logger | None = None) -> None:
        self.bluetooth = bluetooth
        self.logger = logger or LOGGER

    async def discover(
        self,
        addresses: Sequence[LighthouseAddress],
        timeout_s: float = DISCOVERY_TIMEOUT_S,
    ) -> list[DiscoveredDevice]:
        """Return one device per address, in the order they were found.

        Raises AdapterNotFoundError without scanning when there is no adapter,
        and DiscoveryTimeoutError when some address was not seen in time.
        """
        if not addresses:
            raise ValueError("At least one lighthouse address is required")

        adapters = await self.bluetooth.list_adapters()
        if not adapters:
            raise AdapterNotFoundError("No Bluetooth adapters found")
        adapter = adapters[0]

        pending = {address.path_suffix: address for address in addresses}
        found: list[DiscoveredDevice] = []

        self.logger.debug("Starting device discovery on %s...", adapter.name)
        await adapter.start_discovery()
        try:
            self.logger.debug(
                "Waiting to find all devices, this will time out after %.0f seconds...",
                timeout_s,
            )
            await asyncio.wait_for(self._collect(adapter, pending, found), timeout=timeout_s)
        except asyncio.TimeoutError as exc:
            missing = ", ".join(str(address) for address in pending.values())
            raise DiscoveryTimeoutError(
                f"Timed out after {timeout_s:.0f} seconds waiting for lighthouses: {missing}"
            ) from exc
        finally:
            self.logger.debug("Stopping device discovery...")
            try:
                await adapter.stop_discovery()
            except Exception as exc:
                self.logger.warning("Failed to stop device discovery on %s: %s", adapter.name, exc)

        if pending:
            missing = ", ".join(str(address) for address in pending.values())
            raise DiscoveryTimeoutError(f"Discovery ended before finding lighthouses: {missing}")
        self.logger.debug("Finished finding all devices")
        return found

    async def _collect(
        self,
        adapter: Adapter,
        pending: dict[str, LighthouseAddress],
        found: list[DiscoveredDevice],
    ) -> None:
        async with aclosing(adapter.found_devices()) as devices:
            async for device in devices:
                address = _match(device.path, pending)
                if address is None and any(item.address.matches_path(device.path) for item in found):
                    self.logger.debug("Device %s was already matched, ignoring", device.path)
                    continue
                if address is None:
                    self.logger.debug(
                        "Device %s is not one of the specified lighthouses, skipping",
                        device.path,
                    )
                    continue
                del pending[address.path_suffix]
                found.append(DiscoveredDevice(address=address, handle=device))
                self.logger.debug("Found device %s (%s)", device.path, address)
                if not pending:
                    return


def _match(path: str, pending: dict[str, LighthouseAddress]) -> LighthouseAddress | None:
    for address in pending.values():
        if address.matches_path(path):
            return address
    return None
