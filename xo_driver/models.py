"""Data models for xo-machine-driver."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from xo_driver.constants import (
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USER,
    DEFAULT_VM_CPUS,
    DEFAULT_VM_MEM_MB,
    SSH_KEY_NAME,
)
from xo_driver.exceptions import ConfigurationError


def mib_to_bytes(memory_mb: int) -> int:
    return memory_mb * 1024 * 1024


@dataclass
class MachineConfig:
    machine_name: str
    store_path: Path
    xo_url: str
    xo_username: str
    xo_password: str
    template: str
    xo_insecure: bool = False
    cpus: int = DEFAULT_VM_CPUS
    memory_mb: int = DEFAULT_VM_MEM_MB
    cloud_config: Optional[str] = None
    network: Optional[str] = None
    vm_password: Optional[str] = None
    ssh_user: str = DEFAULT_SSH_USER
    ssh_port: int = DEFAULT_SSH_PORT
    # Assigned by the remote service / IP acquisition
    vm_id: Optional[str] = None
    ip_address: Optional[str] = None

    @property
    def ssh_key_path(self) -> Path:
        return Path(self.store_path) / SSH_KEY_NAME

    @property
    def memory_static(self) -> List[int]:
        """Static memory range in bytes, as sent to ``vm.create``."""
        return [0, mib_to_bytes(self.memory_mb)]

    def assign_vm_id(self, vm_id: str) -> None:
        if not vm_id:
            raise ConfigurationError("Remote service returned an empty VM id")
        if self.vm_id is not None and self.vm_id != vm_id:
            raise ConfigurationError(
                f"Machine {self.machine_name} is already bound to VM {self.vm_id}; refusing to rebind to {vm_id}"
            )
        self.vm_id = vm_id

    def clear_remote(self) -> None:
        self.vm_id = None
        self.ip_address = None

    def to_dict(self) -> Dict[str, Any]:
        data = dataclasses.asdict(self)
        data["store_path"] = str(self.store_path)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MachineConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        missing = sorted(
            f.name
            for f in dataclasses.fields(cls)
            if f.name not in values
            and f.default is dataclasses.MISSING
            and f.default_factory is dataclasses.MISSING
        )
        if missing:
            raise ConfigurationError(f"Stored machine config is missing fields: {', '.join(missing)}")
        values["store_path"] = Path(values["store_path"])
        return cls(**values)


@dataclass
class Network:
    id: str
    name_label: str = ""

    @classmethod
    def from_api(cls, obj: Dict[str, Any]) -> "Network":
        return cls(id=str(obj.get("id") or obj.get("uuid") or ""), name_label=obj.get("name_label") or "")


def _address_sort_key(key: str) -> Tuple[Tuple[int, int, str], ...]:
    """Order "<dev>/<family>/<n>" keys numerically by device, then family and index."""
    return tuple((0, int(part), "") if part.isdigit() else (1, 0, part) for part in str(key).split("/"))


@dataclass
class RemoteVM:
    id: str
    name_label: str = ""
    name_description: str = ""
    power_state: str = ""
    addresses: List[str] = field(default_factory=list)
    cpus: Optional[int] = None
    memory_static: List[int] = field(default_factory=list)

    @classmethod
    def from_api(cls, obj: Dict[str, Any]) -> "RemoteVM":
        raw_addresses = obj.get("addresses") or {}
        if isinstance(raw_addresses, dict):
            addresses = [str(raw_addresses[key]) for key in sorted(raw_addresses, key=_address_sort_key)]
        else:
            addresses = [str(addr) for addr in raw_addresses]
        cpus = obj.get("CPUs") or {}
        memory = obj.get("memory") or {}
        return cls(
            id=str(obj.get("id") or obj.get("uuid") or ""),
            name_label=obj.get("name_label") or "",
            name_description=obj.get("name_description") or "",
            power_state=obj.get("power_state") or "",
            addresses=addresses,
            cpus=cpus.get("number") if isinstance(cpus, dict) else None,
            memory_static=list(memory.get("static") or []) if isinstance(memory, dict) else [],
        )


@dataclass
class VMCreateRequest:
    name_label: str
    name_description: str
    template: str
    cpus: int
    memory_static: List[int]
    cloud_config: str
    vifs: List[Dict[str, str]] = field(default_factory=list)

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "name_label": self.name_label,
            "name_description": self.name_description,
            "template": self.template,
            "CPUs": self.cpus,
            "memoryMax": self.memory_static[1],
            "cloudConfig": self.cloud_config,
        }
        if self.vifs:
            params["VIFs"] = self.vifs
        return params
