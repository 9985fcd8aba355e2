"""Xen Orchestra JSON-RPC client for xo-machine-driver.

XO exposes its API as JSON-RPC 2.0 over a WebSocket at ``/api/``. A client is
short-lived: the driver opens one per operation, signs in, issues its calls and
closes it again. No connection state is kept between operations.
"""

from __future__ import annotations

import itertools
import json
import ssl
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse, urlunparse

from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
from websockets.sync.client import connect as ws_connect

from xo_driver.constants import (
    CALL_TIMEOUT,
    CONNECT_RETRY_INTERVAL,
    CONNECT_RETRY_MAX_TIME,
    CREATE_TIMEOUT,
    XO_API_PATH,
)
from xo_driver.exceptions import DriverError, RemoteConnectionError, XOAPIError
from xo_driver.models import MachineConfig, Network, RemoteVM, VMCreateRequest
from xo_driver.utils import log

# Connection failures worth retrying while the initial socket is opened
_RETRYABLE = (ConnectionRefusedError, ConnectionResetError, TimeoutError)


def api_uri(url: str) -> str:
    """Turn the configured XO URL into the WebSocket API endpoint."""
    parsed = urlparse(url)
    scheme = {"http": "ws", "https": "wss"}.get(parsed.scheme.lower(), parsed.scheme.lower())
    return urlunparse((scheme, parsed.netloc, XO_API_PATH, "", "", ""))


class XOClient:
    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        insecure: bool = False,
        call_timeout: float = CALL_TIMEOUT,
        connector: Callable[..., Any] = ws_connect,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url
        self.uri = api_uri(url)
        self.username = username
        self._password = password
        self.insecure = insecure
        self.call_timeout = call_timeout
        self._connector = connector
        self._sleep = sleep
        self._clock = clock
        self._ids = itertools.count(1)
        self.ws: Optional[Any] = None

    @classmethod
    def from_config(cls, cfg: MachineConfig) -> "XOClient":
        return cls(cfg.xo_url, cfg.xo_username, cfg.xo_password, insecure=cfg.xo_insecure)

    def __enter__(self) -> "XOClient":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if not self.uri.startswith("wss://"):
            return None
        context = ssl.create_default_context()
        if self.insecure:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _open_socket(self) -> Any:
        kwargs: Dict[str, Any] = {"open_timeout": self.call_timeout, "max_size": None}
        context = self._ssl_context()
        if context is not None:
            kwargs["ssl"] = context
        deadline = self._clock() + CONNECT_RETRY_MAX_TIME
        while True:
            try:
                return self._connector(self.uri, **kwargs)
            except _RETRYABLE as exc:
                if self._clock() >= deadline:
                    raise RemoteConnectionError(f"Could not connect to {self.uri}: {exc}") from exc
                log("DEBUG", f"Connection to {self.uri} failed ({exc}); retrying")
                self._sleep(CONNECT_RETRY_INTERVAL)
            except ssl.SSLError as exc:
                hint = "" if self.insecure else " (use --xo-insecure for self-signed certificates)"
                raise RemoteConnectionError(f"TLS error connecting to {self.uri}: {exc}{hint}") from exc
            except (InvalidHandshake, InvalidURI, OSError) as exc:
                raise RemoteConnectionError(f"Could not connect to {self.uri}: {exc}") from exc

    def connect(self) -> None:
        if self.ws is not None:
            return
        log("DEBUG", f"Connecting to {self.uri}")
        self.ws = self._open_socket()
        try:
            self.call("session.signInWithPassword", {"email": self.username, "password": self._password})
        except XOAPIError as exc:
            self.close()
            raise RemoteConnectionError(f"Authentication as {self.username} failed: {exc.message}") from exc
        except DriverError:
            self.close()
            raise

    def close(self) -> None:
        if self.ws is not None:
            try:
                self.ws.close()
            except OSError:
                log("DEBUG", f"Error closing connection to {self.uri}")
            self.ws = None

    def call(self, method: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        """Issue a JSON-RPC request and wait for its response.

        Notifications pushed by XO (messages without an ``id``) and responses
        to other requests are skipped. An ``error`` member becomes XOAPIError;
        no answer within ``timeout`` seconds also raises XOAPIError.
        """
        if self.ws is None:
            raise RemoteConnectionError("XO client is not connected")
        request_id = next(self._ids)
        frame = {"jsonrpc": "2.0", "method": method, "params": params or {}, "id": request_id}
        limit = self.call_timeout if timeout is None else timeout
        deadline = self._clock() + limit
        try:
            self.ws.send(json.dumps(frame))
            while True:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    raise TimeoutError
                raw = self.ws.recv(timeout=remaining)
                try:
                    message = json.loads(raw)
                except ValueError:
                    log("DEBUG", f"Ignoring non-JSON message from {self.uri}")
                    continue
                if not isinstance(message, dict) or message.get("id") != request_id:
                    continue
                error = message.get("error")
                if error is not None:
                    if not isinstance(error, dict):
                        error = {"message": str(error)}
                    raise XOAPIError(method, error.get("code"), error.get("message") or "unknown error", error.get("data"))
                return message.get("result")
        except TimeoutError as exc:
            raise XOAPIError(method, None, f"no response within {int(limit)}s") from exc
        except ConnectionClosed as exc:
            self.ws = None
            raise RemoteConnectionError(f"Connection to {self.uri} closed during {method}: {exc}") from exc

    def _get_objects(self, filter_: Dict[str, Any]) -> List[Dict[str, Any]]:
        result = self.call("xo.getAllObjects", {"filter": filter_})
        if isinstance(result, dict):
            return [obj for obj in result.values() if isinstance(obj, dict)]
        if isinstance(result, list):
            return [obj for obj in result if isinstance(obj, dict)]
        return []

    # -- VMs -------------------------------------------------------------

    def create_vm(self, request: VMCreateRequest, timeout: float = CREATE_TIMEOUT) -> str:
        result = self.call("vm.create", request.to_params(), timeout=timeout)
        if isinstance(result, dict):
            result = result.get("id")
        if not isinstance(result, str) or not result:
            raise XOAPIError("vm.create", None, f"unexpected result {result!r}")
        return result

    def get_vm(self, vm_id: str) -> RemoteVM:
        objects = self._get_objects({"type": "VM", "id": vm_id})
        if not objects:
            raise XOAPIError("xo.getAllObjects", None, f"VM {vm_id} not found")
        return RemoteVM.from_api(objects[0])

    def start_vm(self, vm_id: str) -> None:
        self.call("vm.start", {"id": vm_id})

    def halt_vm(self, vm_id: str) -> None:
        self.call("vm.stop", {"id": vm_id, "force": False})

    def force_stop_vm(self, vm_id: str) -> None:
        self.call("vm.stop", {"id": vm_id, "force": True})

    def restart_vm(self, vm_id: str) -> None:
        self.call("vm.restart", {"id": vm_id, "force": False})

    def delete_vm(self, vm_id: str) -> None:
        self.call("vm.delete", {"id": vm_id})

    # -- Networks --------------------------------------------------------

    def _get_network(self, filter_: Dict[str, Any], label: str) -> Network:
        objects = self._get_objects(dict(filter_, type="network"))
        if not objects:
            raise XOAPIError("xo.getAllObjects", None, f"no network with {label}")
        if len(objects) > 1:
            raise XOAPIError("xo.getAllObjects", None, f"{len(objects)} networks match {label}")
        return Network.from_api(objects[0])

    def get_network_by_name(self, name: str) -> Network:
        return self._get_network({"name_label": name}, f"name_label '{name}'")

    def get_network_by_id(self, network_id: str) -> Network:
        return self._get_network({"id": network_id}, f"id '{network_id}'")
