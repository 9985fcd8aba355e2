"""Custom exceptions for xo-machine-driver."""

from __future__ import annotations

from typing import Any, Optional

from xo_driver.state import MachineState


class DriverError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""


class ConfigurationError(DriverError):
    """Invalid or missing machine options; raised before any remote call."""


class RemoteConnectionError(DriverError):
    """Could not open an authenticated session (socket, TLS or sign-in)."""


class XOAPIError(DriverError):
    """Error object returned by the Xen Orchestra JSON-RPC API."""

    def __init__(self, method: str, code: Optional[int], message: str, data: Any = None) -> None:
        self.method = method
        self.code = code
        self.message = message
        self.data = data
        detail = f"{method}: {message}"
        if code is not None:
            detail += f" (code {code})"
        super().__init__(detail)


class RemoteCreateError(DriverError):
    pass


class RemoteStartError(DriverError):
    pass


class RemoteQueryError(DriverError):
    """VM status lookup failed.

    ``state`` is the terminal machine state reported alongside the error.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.state = MachineState.ERROR


class NetworkNotFoundError(DriverError):
    def __init__(self, network: str) -> None:
        self.network = network
        super().__init__(f"Network '{network}' not found by name or id")


class IPTimeoutError(DriverError):
    def __init__(self, vm_id: str, attempts: int) -> None:
        self.vm_id = vm_id
        self.attempts = attempts
        super().__init__(f"Timed out waiting for an IPv4 address on VM {vm_id} after {attempts} attempts")


class KeyGenerationError(DriverError):
    pass


class KeyReadError(DriverError):
    pass
