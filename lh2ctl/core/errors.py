"""Domain-specific errors for lh2ctl."""


class Lh2ctlError(Exception):
    """Base error for lh2ctl."""


class InvalidAddressError(Lh2ctlError, ValueError):
    """Raised when a string is not a Bluetooth hardware address."""


class RegistryError(Lh2ctlError):
    """Base error for the lighthouse registry file."""


class RegistryMissingError(RegistryError):
    """Raised when the registry file does not exist."""


class RegistryCorruptError(RegistryError):
    """Raised when the registry file cannot be read or is not JSON."""


class RegistryInvalidError(RegistryError):
    """Raised when the registry document does not conform to its schema."""


class RegistryEmptyError(RegistryError):
    """Raised when the registry holds no lighthouses."""


class RegistryWriteError(RegistryError):
    """Raised when the registry directory or file cannot be written."""

    def __init__(self, message: str, *, stage: str) -> None:
        super().__init__(message)
        self.stage = stage


class BluetoothError(Lh2ctlError):
    """Base error for the power-write engine."""


class AdapterNotFoundError(BluetoothError):
    """Raised when no Bluetooth adapter is present."""


class DiscoveryTimeoutError(BluetoothError):
    """Raised when not every lighthouse was seen before the scan timed out."""


class ConnectError(BluetoothError):
    """Raised when a connect call fails."""


class ServiceResolutionTimeoutError(BluetoothError):
    """Raised when a connected device does not resolve its services in time."""


class ServiceNotFoundError(BluetoothError):
    """Raised when the lighthouse GATT service is missing on a device."""


class CharacteristicNotFoundError(BluetoothError):
    """Raised when the power characteristic is missing from the service."""


class WriteError(BluetoothError):
    """Raised when writing the power characteristic fails."""


class DisconnectError(BluetoothError):
    """Raised when a disconnect call fails. Never fatal to a run."""
