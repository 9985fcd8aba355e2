"""On-disk machine records: one directory per machine under the storage path."""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import List

from xo_driver.constants import MACHINE_CONFIG_NAME
from xo_driver.exceptions import ConfigurationError, DriverError
from xo_driver.models import MachineConfig
from xo_driver.utils import ensure_directory, log


class MachineStore:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.machines_dir = self.root / "machines"

    def machine_dir(self, name: str) -> Path:
        return self.machines_dir / name

    def config_path(self, name: str) -> Path:
        return self.machine_dir(name) / MACHINE_CONFIG_NAME

    def exists(self, name: str) -> bool:
        return self.config_path(name).exists()

    def list(self) -> List[str]:
        if not self.machines_dir.is_dir():
            return []
        return sorted(p.name for p in self.machines_dir.iterdir() if (p / MACHINE_CONFIG_NAME).is_file())

    def save(self, cfg: MachineConfig) -> None:
        target = self.config_path(cfg.machine_name)
        ensure_directory(target.parent)
        payload = json.dumps(cfg.to_dict(), indent=2, sort_keys=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".config-", suffix=".json")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload + "\n")
            # record holds the XO password
            tmp_path.chmod(0o600)
            tmp_path.replace(target)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise DriverError(f"Failed to save machine {cfg.machine_name}: {exc}") from exc
        log("DEBUG", f"Saved machine record {target}")

    def load(self, name: str) -> MachineConfig:
        path = self.config_path(name)
        if not path.exists():
            raise ConfigurationError(f"Machine '{name}' does not exist (no record at {path})")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Cannot read machine record {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Machine record {path} is not a JSON object")
        return MachineConfig.from_dict(data)

    def remove(self, name: str) -> None:
        machine_dir = self.machine_dir(name)
        if machine_dir.exists():
            shutil.rmtree(machine_dir)
            log("DEBUG", f"Removed {machine_dir}")
