"""Machine lifecycle driver for Xen Orchestra."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Iterator

from xo_driver.client import XOClient
from xo_driver.cloudinit import render_default_cloud_config
from xo_driver.constants import (
    CREATE_TIMEOUT,
    DRIVER_NAME,
    ENGINE_PORT,
    IP_POLL_ATTEMPTS,
    IP_POLL_INTERVAL,
    VM_DESCRIPTION,
)
from xo_driver.exceptions import (
    DriverError,
    NetworkNotFoundError,
    RemoteCreateError,
    RemoteQueryError,
    RemoteStartError,
    XOAPIError,
)
from xo_driver.models import MachineConfig, Network, VMCreateRequest
from xo_driver.polling import wait_for_ipv4
from xo_driver.ssh import generate_ssh_key, read_public_key
from xo_driver.state import MachineState, translate_power_state
from xo_driver.utils import join_host_port, log


class Driver:
    """Drive one machine's VM through XO.

    Every public operation opens its own client session from the stored
    credentials and closes it before returning. Calls for one machine are
    expected to be serialised by the caller.
    """

    def __init__(
        self,
        cfg: MachineConfig,
        client_factory: Callable[[MachineConfig], XOClient] = XOClient.from_config,
        sleep: Callable[[float], None] = time.sleep,
        ip_attempts: int = IP_POLL_ATTEMPTS,
        ip_interval: float = IP_POLL_INTERVAL,
    ) -> None:
        self.cfg = cfg
        self._client_factory = client_factory
        self._sleep = sleep
        self.ip_attempts = ip_attempts
        self.ip_interval = ip_interval

    def driver_name(self) -> str:
        return DRIVER_NAME

    @contextmanager
    def _session(self) -> Iterator[XOClient]:
        client = self._client_factory(self.cfg)
        client.connect()
        try:
            yield client
        finally:
            client.close()

    def _require_vm_id(self) -> str:
        if not self.cfg.vm_id:
            raise DriverError(f"Machine {self.cfg.machine_name} has no VM id; was it created?")
        return self.cfg.vm_id

    # -- create ----------------------------------------------------------

    def _cloud_config(self) -> str:
        if self.cfg.cloud_config:
            return self.cfg.cloud_config
        public_key = read_public_key(self.cfg.ssh_key_path)
        return render_default_cloud_config(public_key, self.cfg.ssh_user, self.cfg.vm_password)

    def build_create_request(self) -> VMCreateRequest:
        return VMCreateRequest(
            name_label=self.cfg.machine_name,
            name_description=VM_DESCRIPTION,
            template=self.cfg.template,
            cpus=self.cfg.cpus,
            memory_static=self.cfg.memory_static,
            cloud_config=self._cloud_config(),
        )

    def resolve_network(self, client: XOClient, value: str) -> Network:
        """Find a network by name label, falling back to treating ``value`` as an id."""
        try:
            return client.get_network_by_name(value)
        except XOAPIError as exc:
            log("DEBUG", f"Network lookup by name '{value}' failed ({exc.message}); trying as id")
        try:
            return client.get_network_by_id(value)
        except XOAPIError as exc:
            raise NetworkNotFoundError(value) from exc

    def create(self) -> None:
        cfg = self.cfg
        log("INFO", f"Creating VM from template {cfg.template}...")
        generate_ssh_key(cfg.ssh_key_path)

        with self._session() as client:
            request = self.build_create_request()
            if cfg.network:
                network = self.resolve_network(client, cfg.network)
                log("INFO", f"Attaching to network {network.name_label or network.id} ({network.id})")
                request.vifs = [{"network": network.id}]

            log("INFO", "Creating VM...")
            try:
                vm_id = client.create_vm(request, timeout=CREATE_TIMEOUT)
            except DriverError as exc:
                raise RemoteCreateError(f"Failed to create VM {cfg.machine_name}: {exc}") from exc
            cfg.assign_vm_id(vm_id)
            log("SUCCESS", f"VM created. UUID: {vm_id}")

            try:
                self._boot_and_wait(client, vm_id)
            except DriverError:
                log(
                    "WARN",
                    f"VM {vm_id} exists on {cfg.xo_url} but did not become ready; it was not removed. "
                    f"Remove it with 'xo-machine rm {cfg.machine_name}'.",
                )
                raise

    def _boot_and_wait(self, client: XOClient, vm_id: str) -> None:
        try:
            vm = client.get_vm(vm_id)
        except DriverError as exc:
            raise RemoteQueryError(f"Failed to query VM {vm_id}: {exc}") from exc

        if vm.power_state != "Running":
            log("INFO", "Starting VM...")
            try:
                client.start_vm(vm_id)
            except DriverError as exc:
                raise RemoteStartError(f"Failed to start VM {vm_id}: {exc}") from exc

        log("INFO", "Waiting for IP...")
        self.cfg.ip_address = wait_for_ipv4(
            vm_id,
            lambda: client.get_vm(vm_id),
            attempts=self.ip_attempts,
            interval=self.ip_interval,
            sleep=self._sleep,
        )

    # -- lifecycle verbs -------------------------------------------------

    def start(self) -> None:
        vm_id = self._require_vm_id()
        with self._session() as client:
            client.start_vm(vm_id)
        log("INFO", f"Started VM {vm_id}")

    def stop(self) -> None:
        vm_id = self._require_vm_id()
        with self._session() as client:
            client.halt_vm(vm_id)
        log("INFO", f"Stopped VM {vm_id}")

    def kill(self) -> None:
        vm_id = self._require_vm_id()
        with self._session() as client:
            client.force_stop_vm(vm_id)
        log("INFO", f"Forced power-off of VM {vm_id}")

    def restart(self) -> None:
        vm_id = self._require_vm_id()
        with self._session() as client:
            client.restart_vm(vm_id)
        log("INFO", f"Restarted VM {vm_id}")

    def remove(self) -> None:
        if not self.cfg.vm_id:
            log("INFO", f"Machine {self.cfg.machine_name} has no VM; nothing to remove remotely")
            return
        vm_id = self.cfg.vm_id
        with self._session() as client:
            client.delete_vm(vm_id)
        self.cfg.clear_remote()
        log("INFO", f"Deleted VM {vm_id}")

    def get_state(self) -> MachineState:
        """Current machine state.

        Raises RemoteQueryError (``state`` is MachineState.ERROR) when the
        machine has no VM id, the session cannot be opened or the VM cannot
        be looked up.
        """
        try:
            vm_id = self._require_vm_id()
            with self._session() as client:
                vm = client.get_vm(vm_id)
        except DriverError as exc:
            raise RemoteQueryError(f"Failed to get state of machine {self.cfg.machine_name}: {exc}") from exc
        return translate_power_state(vm.power_state)

    # -- addressing ------------------------------------------------------

    def get_ip(self) -> str:
        if not self.cfg.ip_address:
            raise DriverError(f"IP address is not set for machine {self.cfg.machine_name}")
        return self.cfg.ip_address

    def get_url(self) -> str:
        return f"tcp://{join_host_port(self.get_ip(), ENGINE_PORT)}"

    def get_ssh_hostname(self) -> str:
        return self.get_ip()

    def get_ssh_username(self) -> str:
        return self.cfg.ssh_user

    def get_ssh_port(self) -> int:
        return self.cfg.ssh_port

    def get_ssh_key_path(self) -> str:
        return str(self.cfg.ssh_key_path)
