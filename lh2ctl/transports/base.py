"""BLE capability interfaces consumed by the power-write engine."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Mapping
from typing import Any, Protocol


class GattCharacteristic(Protocol):
    uuid: str

    async def write_value(self, value: bytes, options: Mapping[str, Any]) -> None:
        """Write ``value`` to the characteristic."""


class GattService(Protocol):
    uuid: str

    async def get_characteristic(self, uuid: str) -> GattCharacteristic | None:
        """Return the characteristic with ``uuid`` or None when absent."""


class Device(Protocol):
    path: str
    address: str

    # Cleared on connect and set once GATT services are resolved. None when
    # the backend has no separate services-resolved signal.
    services_resolved: asyncio.Event | None

    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def get_service(self, uuid: str) -> GattService | None:
        """Return the service with ``uuid`` or None when absent."""

    async def services(self) -> list[GattService]:
        """Return every service the device exposes."""


class Adapter(Protocol):
    name: str

    async def start_discovery(self) -> None:
        ...

    async def stop_discovery(self) -> None:
        ...

    def found_devices(self) -> AsyncGenerator[Device, None]:
        """Yield each device the first time the running scan reports it."""


class BluetoothStack(Protocol):
    async def list_adapters(self) -> list[Adapter]:
        """Return the local adapters. Discovery uses the first one."""
