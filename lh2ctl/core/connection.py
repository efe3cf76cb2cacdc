"""Sequential connection of discovered lighthouses."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import AsyncExitStack, asynccontextmanager

from lh2ctl.core.errors import ConnectError, Lh2ctlError, ServiceResolutionTimeoutError
from lh2ctl.core.model import SERVICE_RESOLUTION_TIMEOUT_S, DiscoveredDevice

LOGGER = logging.getLogger(__name__)


class DeviceConnector:
    """Connects devices one at a time and owns their connections.

    ``connect_all`` is an async context manager: every device that reached a
    connected state is disconnected exactly once when the block exits, or
    when connecting a later device fails.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self.logger = logger or LOGGER

    @asynccontextmanager
    async def connect_all(
        self,
        devices: Sequence[DiscoveredDevice],
        timeout_s: float = SERVICE_RESOLUTION_TIMEOUT_S,
    ) -> AsyncIterator[list[DiscoveredDevice]]:
        async with AsyncExitStack() as stack:
            connected: list[DiscoveredDevice] = []
            self.logger.debug("Connecting to discovered devices...")
            for device in devices:
                await self._connect(device)
                stack.push_async_callback(self._disconnect, device)
                connected.append(device)
                await self._wait_services_resolved(device, timeout_s)
            yield connected
            self.logger.debug("Disconnecting from %d device(s)...", len(connected))

    async def _connect(self, device: DiscoveredDevice) -> None:
        self.logger.debug("Connecting to %s...", device.path)
        try:
            await device.handle.connect()
        except Lh2ctlError:
            raise
        except Exception as exc:
            raise ConnectError(f"Failed to connect to device {device.path}: {exc}") from exc

    async def _wait_services_resolved(self, device: DiscoveredDevice, timeout_s: float) -> None:
        resolved = device.handle.services_resolved
        if resolved is None:
            return
        self.logger.debug(
            "Waiting for services to be resolved for device %s, this will time out after %.0f seconds...",
            device.path,
            timeout_s,
        )
        try:
            await asyncio.wait_for(resolved.wait(), timeout=timeout_s)
        except asyncio.TimeoutError as exc:
            raise ServiceResolutionTimeoutError(
                f"Failed to resolve services within {timeout_s:.0f} seconds for device {device.path}"
            ) from exc
        self.logger.debug("Services resolved for device %s", device.path)

    async def _disconnect(self, device: DiscoveredDevice) -> None:
        try:
            await device.handle.disconnect()
        except Exception as exc:
            self.logger.warning("Failed to disconnect from %s: %s", device.path, exc)
