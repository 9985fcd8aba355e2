"""Shared test fixtures: machine config, fake XO client and key stubs."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from xo_driver.driver import Driver
from xo_driver.exceptions import XOAPIError
from xo_driver.models import MachineConfig, Network, RemoteVM

FAKE_PUBLIC_KEY = "ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQC7fake test-machine"


class FakeXOClient:
    """In-memory stand-in for XOClient recording every remote call."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.sessions = 0
        self.connected = False
        self.connect_error: Optional[Exception] = None
        self.created_id = "vm-0001"
        self.create_error: Optional[Exception] = None
        self.start_error: Optional[Exception] = None
        self.get_vm_error: Optional[Exception] = None
        self.power_state = "Halted"
        # one entry per poll; the last entry repeats once the list runs out
        self.address_polls: List[List[str]] = [["10.0.0.5"]]
        self.networks_by_name: Dict[str, Network] = {}
        self.networks_by_id: Dict[str, Network] = {}

    def connect(self) -> None:
        self.sessions += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def close(self) -> None:
        self.connected = False

    @property
    def methods(self) -> List[str]:
        return [call[0] for call in self.calls]

    def create_vm(self, request, timeout):
        self.calls.append(("create_vm", request, timeout))
        if self.create_error is not None:
            raise self.create_error
        return self.created_id

    def get_vm(self, vm_id):
        self.calls.append(("get_vm", vm_id))
        if self.get_vm_error is not None:
            raise self.get_vm_error
        if len(self.address_polls) > 1:
            addresses = self.address_polls.pop(0)
        else:
            addresses = list(self.address_polls[0]) if self.address_polls else []
        return RemoteVM(id=vm_id, power_state=self.power_state, addresses=addresses)

    def get_network_by_name(self, name):
        self.calls.append(("get_network_by_name", name))
        if name in self.networks_by_name:
            return self.networks_by_name[name]
        raise XOAPIError("xo.getAllObjects", None, f"no network with name_label '{name}'")

    def get_network_by_id(self, network_id):
        self.calls.append(("get_network_by_id", network_id))
        if network_id in self.networks_by_id:
            return self.networks_by_id[network_id]
        raise XOAPIError("xo.getAllObjects", None, f"no network with id '{network_id}'")

    def start_vm(self, vm_id):
        self.calls.append(("start_vm", vm_id))
        if self.start_error is not None:
            raise self.start_error

    def halt_vm(self, vm_id):
        self.calls.append(("halt_vm", vm_id))

    def force_stop_vm(self, vm_id):
        self.calls.append(("force_stop_vm", vm_id))

    def restart_vm(self, vm_id):
        self.calls.append(("restart_vm", vm_id))

    def delete_vm(self, vm_id):
        self.calls.append(("delete_vm", vm_id))


@pytest.fixture
def machine_config(tmp_path) -> MachineConfig:
    """Return a validated MachineConfig with default VM sizing."""
    return MachineConfig(
        machine_name="test-machine",
        store_path=tmp_path / "machines" / "test-machine",
        xo_url="https://xo.example.com",
        xo_username="admin@admin.net",
        xo_password="secret",
        template="tmpl-1",
    )


@pytest.fixture
def fake_client() -> FakeXOClient:
    return FakeXOClient()


@pytest.fixture
def public_key() -> str:
    return FAKE_PUBLIC_KEY


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_keygen(monkeypatch):
    """Replace ssh-keygen with a stub writing a fixed key pair."""
    generated: List[Path] = []

    def _generate(path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("PRIVATE KEY\n")
        path.with_name(path.name + ".pub").write_text(FAKE_PUBLIC_KEY + "\n")
        generated.append(path)

    monkeypatch.setattr("xo_driver.driver.generate_ssh_key", _generate)
    return generated


@pytest.fixture
def driver(machine_config, fake_client, sleeps, fake_keygen) -> Driver:
    return Driver(machine_config, client_factory=lambda cfg: fake_client, sleep=sleeps.append)


# All environment variables that build_machine_config() reads.
_OPTION_ENV_VARS = [
    "XO_URL",
    "XO_USERNAME",
    "XO_PASSWORD",
    "XO_INSECURE",
    "XO_TEMPLATE",
    "XO_VM_CPUS",
    "XO_VM_MEM",
    "XO_CLOUD_CONFIG",
    "XO_VM_NETWORK",
    "XO_VM_PASSWORD",
    "XO_SSH_USER",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Clear all environment variables that the option table reads."""
    for key in _OPTION_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
