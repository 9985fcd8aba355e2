"""Global constants and defaults for xo-machine-driver."""

from __future__ import annotations

import os
import re
from pathlib import Path

DRIVER_NAME = "Xen Orchestra"
VM_DESCRIPTION = "Created by xo-machine-driver"

DEFAULT_VM_CPUS = 2
DEFAULT_VM_MEM_MB = 2048
DEFAULT_SSH_USER = "root"
DEFAULT_SSH_PORT = 22

# Docker engine endpoint exposed by provisioned machines
ENGINE_PORT = 2376

# IP acquisition: 60 polls, 2s apart (~120s worst case)
IP_POLL_ATTEMPTS = 60
IP_POLL_INTERVAL = 2.0

# Remote call timeouts (seconds)
CREATE_TIMEOUT = 5 * 60
CALL_TIMEOUT = 60.0
CONNECT_RETRY_MAX_TIME = 10.0
CONNECT_RETRY_INTERVAL = 1.0

XO_API_PATH = "/api/"
SUPPORTED_URL_SCHEMES = {"http", "https", "ws", "wss"}

SSH_KEY_NAME = "id_rsa"
SSH_KEY_BITS = 2048
MACHINE_CONFIG_NAME = "config.json"

DEFAULT_STORAGE_PATH = Path(
    os.environ.get("XO_MACHINE_STORAGE_PATH", str(Path.home() / ".xo-machine"))
)

TRUTHY = {"1", "true", "yes", "on"}
MACHINE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

CLOUD_INIT_HEADERS = ("#cloud-config", "#!", "#cloud-boothook", "#include", "#part-handler")

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

_SENSITIVE_FIELDS = {"xo_password", "vm_password"}
