"""Lookup of the lighthouse power characteristic."""

from __future__ import annotations

import logging

from lh2ctl.core.errors import CharacteristicNotFoundError, ServiceNotFoundError
from lh2ctl.core.model import POWER_CHARACTERISTIC_UUID, POWER_SERVICE_UUID, DiscoveredDevice
from lh2ctl.transports.base import GattCharacteristic

LOGGER = logging.getLogger(__name__)


class CharacteristicResolver:
    def __init__(
        self,
        *,
        service_uuid: str = POWER_SERVICE_UUID,
        characteristic_uuid: str = POWER_CHARACTERISTIC_UUID,
        logger: logging.Logger | None = None,
    ) -> None:
        self.service_uuid = service_uuid
        self.characteristic_uuid = characteristic_uuid
        self.logger = logger or LOGGER

    async def resolve_writable(self, device: DiscoveredDevice) -> GattCharacteristic:
        self.logger.debug(
            "Getting the GATT service (%s) of %s...",
            self.service_uuid,
            device.address,
        )
        service = await device.handle.get_service(self.service_uuid)
        if service is None:
            self.logger.error(
                "No GATT service (%s) found for %s!",
                self.service_uuid,
                device.address,
            )
            await self._log_available_services(device)
            raise ServiceNotFoundError(
                f"GATT service {self.service_uuid} not found on {device.address} ({device.path})"
            )

        self.logger.debug(
            "Getting the power characteristic (%s) of %s...",
            self.characteristic_uuid,
            device.address,
        )
        characteristic = await service.get_characteristic(self.characteristic_uuid)
        if characteristic is None:
            raise CharacteristicNotFoundError(
                f"No power state characteristic ({self.characteristic_uuid}) "
                f"for {device.address} ({device.path})"
            )
        return characteristic

    async def _log_available_services(self, device: DiscoveredDevice) -> None:
        services = await device.handle.services()
        if not services:
            self.logger.error("No services found for %s", device.address)
            return
        self.logger.info("Found %d services for %s", len(services), device.address)
        for service in services:
            self.logger.info("Found service: %s", service)
