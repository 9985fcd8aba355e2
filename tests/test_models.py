"""Tests for xo_driver.models module."""

from __future__ import annotations

from pathlib import Path

import pytest

from xo_driver.exceptions import ConfigurationError
from xo_driver.models import MachineConfig, Network, RemoteVM, VMCreateRequest, mib_to_bytes


def test_mib_to_bytes():
    assert mib_to_bytes(1) == 1048576
    assert mib_to_bytes(2048) == 2147483648


class TestMachineConfig:
    def test_derived_paths(self, machine_config):
        assert machine_config.ssh_key_path == machine_config.store_path / "id_rsa"
        assert machine_config.memory_static == [0, 2147483648]

    def test_assign_vm_id(self, machine_config):
        machine_config.assign_vm_id("vm-1")
        machine_config.assign_vm_id("vm-1")
        assert machine_config.vm_id == "vm-1"

    def test_refuses_rebind(self, machine_config):
        machine_config.assign_vm_id("vm-1")
        with pytest.raises(ConfigurationError, match="refusing to rebind"):
            machine_config.assign_vm_id("vm-2")

    def test_refuses_empty_id(self, machine_config):
        with pytest.raises(ConfigurationError):
            machine_config.assign_vm_id("")

    def test_clear_remote(self, machine_config):
        machine_config.vm_id = "vm-1"
        machine_config.ip_address = "10.0.0.5"
        machine_config.clear_remote()
        assert machine_config.vm_id is None
        assert machine_config.ip_address is None

    def test_dict_roundtrip(self, machine_config):
        machine_config.vm_id = "vm-1"
        data = machine_config.to_dict()
        assert data["store_path"] == str(machine_config.store_path)

        restored = MachineConfig.from_dict(data)
        assert restored == machine_config
        assert isinstance(restored.store_path, Path)

    def test_from_dict_ignores_unknown_keys(self, machine_config):
        data = machine_config.to_dict()
        data["legacy"] = "x"
        assert MachineConfig.from_dict(data).machine_name == "test-machine"

    def test_from_dict_missing_fields(self):
        with pytest.raises(ConfigurationError, match="missing fields: store_path, template"):
            MachineConfig.from_dict(
                {"machine_name": "m", "xo_url": "https://xo", "xo_username": "u", "xo_password": "p"}
            )


class TestRemoteVM:
    def test_from_api(self):
        vm = RemoteVM.from_api(
            {
                "id": "vm-1",
                "name_label": "m1",
                "power_state": "Halted",
                "addresses": {"1/ipv4/0": "10.0.1.5", "0/ipv4/0": "10.0.0.5"},
                "CPUs": {"number": 4},
                "memory": {"static": [0, 1073741824]},
            }
        )
        assert vm.addresses == ["10.0.0.5", "10.0.1.5"]
        assert vm.cpus == 4
        assert vm.power_state == "Halted"

    def test_addresses_ordered_by_numeric_device(self):
        vm = RemoteVM.from_api(
            {"id": "vm-1", "addresses": {"10/ipv4/0": "10.0.0.10", "2/ipv4/0": "10.0.0.2", "2/ipv4/1": "10.0.0.3"}}
        )
        assert vm.addresses == ["10.0.0.2", "10.0.0.3", "10.0.0.10"]

    def test_missing_fields(self):
        vm = RemoteVM.from_api({"uuid": "vm-2"})
        assert vm.id == "vm-2"
        assert vm.addresses == []
        assert vm.cpus is None
        assert vm.memory_static == []

    def test_network_from_api(self):
        assert Network.from_api({"id": "n1", "name_label": "lan"}) == Network("n1", "lan")


class TestVMCreateRequest:
    def test_params_without_network(self):
        request = VMCreateRequest("m1", "desc", "tmpl", 2, [0, 2147483648], "#cloud-config\n")
        assert request.to_params() == {
            "name_label": "m1",
            "name_description": "desc",
            "template": "tmpl",
            "CPUs": 2,
            "memoryMax": 2147483648,
            "cloudConfig": "#cloud-config\n",
        }

    def test_params_with_network(self):
        request = VMCreateRequest("m1", "d", "t", 1, [0, 1048576], "#cloud-config\n", [{"network": "n1"}])
        assert request.to_params()["VIFs"] == [{"network": "n1"}]
