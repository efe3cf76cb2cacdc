"""BLE GATT transport implementation on bleak."""

from __future__ import annotations

import asyncio
import logging
import re
import subprocess
from collections.abc import AsyncGenerator, Mapping, Sequence
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.service import BleakGATTService
from bleak.exc import BleakError

from lh2ctl.core.errors import AdapterNotFoundError, ConnectError, DisconnectError

_CONTROLLER_LINE_RE = re.compile(r"^Controller\s+([0-9A-F:]{17})\s*(.*)$", re.IGNORECASE)
_LIST_TIMEOUT_S = 5.0
LOGGER = logging.getLogger(__name__)


class BleakCharacteristic:
    def __init__(self, client: BleakClient, characteristic: BleakGATTCharacteristic) -> None:
        self._client = client
        self._characteristic = characteristic
        self.uuid = characteristic.uuid

    async def write_value(self, value: bytes, options: Mapping[str, Any]) -> None:
        # Same "type" option as BlueZ WriteValue: "request" expects a response, "command" does not.
        response = options.get("type", "request") != "command"
        await self._client.write_gatt_char(self._characteristic, value, response=response)


class BleakService:
    def __init__(self, client: BleakClient, service: BleakGATTService) -> None:
        self._client = client
        self._service = service
        self.uuid = service.uuid
        self.description = service.description

    async def get_characteristic(self, uuid: str) -> BleakCharacteristic | None:
        characteristic = self._service.get_characteristic(uuid)
        if characteristic is None:
            return None
        return BleakCharacteristic(self._client, characteristic)

    def __str__(self) -> str:
        return f"{self.uuid} ({self.description})"


class BleakDevice:
    # BleakClient.connect() only returns once service discovery has finished,
    # so connect_timeout_s bounds resolution too and a late resolve fails the
    # connect (ConnectError from the connector).
    services_resolved: asyncio.Event | None = None

    def __init__(self, ble_device: BLEDevice, *, connect_timeout_s: float = 10.0) -> None:
        self._ble_device = ble_device
        self._connect_timeout_s = connect_timeout_s
        self._client: BleakClient | None = None
        self.address = ble_device.address.upper()
        self.name = ble_device.name or "<unknown-device>"
        self.path = _object_path(ble_device)

    async def connect(self) -> None:
        client = BleakClient(
            self._ble_device,
            disconnected_callback=self._on_disconnected,
            timeout=self._connect_timeout_s,
        )
        await client.connect()
        self._client = client
        LOGGER.debug("Device %s connected", self.path)

    async def disconnect(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await client.disconnect()
        except Exception as exc:
            raise DisconnectError(f"BLE disconnect failed for {self.path}: {exc}") from exc

    async def get_service(self, uuid: str) -> BleakService | None:
        client = self._connected_client()
        service = client.services.get_service(uuid)
        if service is None:
            return None
        return BleakService(client, service)

    async def services(self) -> list[BleakService]:
        client = self._connected_client()
        return [BleakService(client, service) for service in client.services]

    def _connected_client(self) -> BleakClient:
        if self._client is None or not self._client.is_connected:
            raise ConnectError(f"Device {self.path} is not connected")
        return self._client

    def _on_disconnected(self, _: BleakClient) -> None:
        LOGGER.debug("Device %s disconnected", self.path)


class BleakAdapter:
    def __init__(self, name: str, *, connect_timeout_s: float = 10.0) -> None:
        self.name = name
        self._connect_timeout_s = connect_timeout_s
        self._scanner: BleakScanner | None = None
        self._seen: set[str] = set()

    async def start_discovery(self) -> None:
        self._seen.clear()
        scanner = BleakScanner()
        try:
            await scanner.start()
        except BleakError as exc:
            raise AdapterNotFoundError(f"Could not start scanning on {self.name}: {exc}") from exc
        self._scanner = scanner

    async def stop_discovery(self) -> None:
        if self._scanner is None:
            return
        scanner, self._scanner = self._scanner, None
        await scanner.stop()

    async def found_devices(self) -> AsyncGenerator[BleakDevice, None]:
        if self._scanner is None:
            raise RuntimeError(f"Discovery is not running on {self.name}")
        try:
            async for ble_device, _ in self._scanner.advertisement_data():
                if ble_device.address in self._seen:
                    continue
                self._seen.add(ble_device.address)
                yield BleakDevice(ble_device, connect_timeout_s=self._connect_timeout_s)
        except BleakError as exc:
            raise AdapterNotFoundError(f"Scanning failed on {self.name}: {exc}") from exc


class BleakBluetoothStack:
    def __init__(self, *, connect_timeout_s: float = 10.0) -> None:
        self._connect_timeout_s = connect_timeout_s

    async def list_adapters(self) -> list[BleakAdapter]:
        cmd = ["bluetoothctl", "list"]
        result = await asyncio.to_thread(_run_command, cmd)
        if result is None:
            # No BlueZ tooling (non-Linux host); bleak picks the platform adapter.
            LOGGER.debug("bluetoothctl not available, using the platform default adapter")
            return [BleakAdapter("default", connect_timeout_s=self._connect_timeout_s)]
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise AdapterNotFoundError(
                f"Listing Bluetooth adapters failed. Ensure a working D-Bus/BlueZ session. Details: {stderr}"
            )
        return [
            BleakAdapter(name, connect_timeout_s=self._connect_timeout_s)
            for name in parse_controllers(result.stdout)
        ]


def parse_controllers(output: str) -> list[str]:
    """Return the controller addresses from ``bluetoothctl list`` output.

    Only the count matters: bleak scans and connects on its own default
    controller, which is the one the adapters returned here stand for.
    """
    return [
        match.group(1).upper()
        for match in (_CONTROLLER_LINE_RE.match(line.strip()) for line in output.splitlines())
        if match
    ]


def _object_path(ble_device: BLEDevice) -> str:
    details = ble_device.details
    if isinstance(details, dict) and isinstance(details.get("path"), str):
        return details["path"]
    return f"dev_{ble_device.address.upper().replace(':', '_')}"


def _run_command(cmd: Sequence[str]) -> subprocess.CompletedProcess[str] | None:
    try:
        return subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
            timeout=_LIST_TIMEOUT_S,
        )
    except FileNotFoundError:
        return None
    except subprocess.TimeoutExpired as exc:
        raise AdapterNotFoundError(
            f"'{' '.join(cmd)}' did not answer within {_LIST_TIMEOUT_S:.0f} seconds; is bluetoothd running?"
        ) from exc
