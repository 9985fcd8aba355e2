"""Machine option table, environment fallback and validation for xo-machine-driver."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple
from urllib.parse import urlparse

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from xo_driver.constants import (
    CLOUD_INIT_HEADERS,
    DEFAULT_SSH_USER,
    DEFAULT_VM_CPUS,
    DEFAULT_VM_MEM_MB,
    MACHINE_NAME_RE,
    SUPPORTED_URL_SCHEMES,
)
from xo_driver.exceptions import ConfigurationError
from xo_driver.models import MachineConfig
from xo_driver.utils import get_env, log, parse_bool, parse_int_value


class Option(NamedTuple):
    name: str
    env_var: str
    kind: str  # "str", "int" or "bool"
    usage: str
    default: Any = None
    required: bool = False
    sensitive: bool = False

    @property
    def field(self) -> str:
        return self.name.replace("-", "_")


OPTIONS: Tuple[Option, ...] = (
    Option("xo-url", "XO_URL", "str", "Xen Orchestra URL (e.g. https://xen-orchestra.com)", required=True),
    Option("xo-username", "XO_USERNAME", "str", "Xen Orchestra Username", required=True),
    Option("xo-password", "XO_PASSWORD", "str", "Xen Orchestra Password", required=True, sensitive=True),
    Option("xo-insecure", "XO_INSECURE", "bool", "Skip TLS verification", default=False),
    Option("xo-template", "XO_TEMPLATE", "str", "Template to clone", required=True),
    Option("xo-vm-cpus", "XO_VM_CPUS", "int", "Number of CPUs", default=DEFAULT_VM_CPUS),
    Option("xo-vm-mem", "XO_VM_MEM", "int", "Memory in MB", default=DEFAULT_VM_MEM_MB),
    Option("xo-cloud-config", "XO_CLOUD_CONFIG", "str", "Cloud-init configuration (user-data)"),
    Option("xo-vm-network", "XO_VM_NETWORK", "str", "Network to attach to (name or UUID)"),
    Option(
        "xo-vm-password",
        "XO_VM_PASSWORD",
        "str",
        "Password for the SSH user, set through the generated cloud-config",
        sensitive=True,
    ),
    Option("xo-ssh-user", "XO_SSH_USER", "str", "SSH user on the provisioned VM", default=DEFAULT_SSH_USER),
)

OPTIONS_BY_NAME: Dict[str, Option] = {opt.name: opt for opt in OPTIONS}


def resolve_options(opts: Mapping[str, Any], env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Resolve every option: explicit value, then environment variable, then default.

    ``opts`` may be keyed by flag name (``xo-url``) or field name (``xo_url``).
    Values are returned raw (strings from the environment are not converted).
    """
    resolved: Dict[str, Any] = {}
    for opt in OPTIONS:
        value = opts.get(opt.name)
        if value is None:
            value = opts.get(opt.field)
        if value is None or (isinstance(value, str) and value == ""):
            env_value = get_env(opt.env_var, env=env)
            if env_value is not None and env_value != "":
                value = env_value
        if value is None or (isinstance(value, str) and value == ""):
            value = opt.default
        resolved[opt.name] = value
    return resolved


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_url(raw: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme.lower() not in SUPPORTED_URL_SCHEMES or not parsed.hostname:
        raise ConfigurationError(
            f"Invalid xo-url '{raw}'. Expected an http(s) or ws(s) URL such as https://xo.example.com"
        )
    return raw.rstrip("/")


def validate_machine_name(name: str) -> str:
    if not name or not MACHINE_NAME_RE.match(name):
        raise ConfigurationError(
            f"Invalid machine name '{name}'. Use letters, digits, '.', '_' or '-' (must start alphanumeric)"
        )
    return name


def check_cloud_config(payload: str) -> None:
    """Sanity-check user supplied cloud-init data; raise only on broken #cloud-config YAML."""
    first_line = payload.lstrip().split("\n", 1)[0].strip()
    if not any(first_line.startswith(h) for h in CLOUD_INIT_HEADERS):
        log(
            "WARN",
            f"xo-cloud-config does not start with a recognized cloud-init header "
            f"(got: '{first_line[:60]}'). "
            "Expected: #cloud-config, #!/bin/bash, #cloud-boothook, #include, or #part-handler",
        )
        return
    if first_line != "#cloud-config":
        return
    try:
        parsed = yaml.safe_load(payload)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"xo-cloud-config contains invalid YAML: {exc}")
    if not isinstance(parsed, dict):
        log("WARN", "xo-cloud-config: #cloud-config should contain a YAML mapping, got " + type(parsed).__name__)


def build_machine_config(
    machine_name: str,
    store_path: Path,
    opts: Mapping[str, Any],
    env: Optional[Mapping[str, str]] = None,
) -> MachineConfig:
    """Validate raw options into a MachineConfig. No remote calls are made."""
    validate_machine_name(machine_name)
    values = resolve_options(opts, env)

    missing = [opt.name for opt in OPTIONS if opt.required and _clean_str(values[opt.name]) is None]
    if missing:
        raise ConfigurationError(f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required")

    cpus = parse_int_value("xo-vm-cpus", values["xo-vm-cpus"])
    memory_mb = parse_int_value("xo-vm-mem", values["xo-vm-mem"])

    cloud_config = values["xo-cloud-config"]
    if cloud_config is not None and not str(cloud_config).strip():
        cloud_config = None
    if cloud_config is not None:
        cloud_config = str(cloud_config)
        check_cloud_config(cloud_config)

    return MachineConfig(
        machine_name=machine_name,
        store_path=Path(store_path),
        xo_url=validate_url(str(values["xo-url"]).strip()),
        xo_username=str(values["xo-username"]).strip(),
        xo_password=str(values["xo-password"]),
        template=str(values["xo-template"]).strip(),
        xo_insecure=parse_bool(values["xo-insecure"]),
        cpus=cpus,
        memory_mb=memory_mb,
        cloud_config=cloud_config,
        network=_clean_str(values["xo-vm-network"]),
        vm_password=values["xo-vm-password"] or None,
        ssh_user=_clean_str(values["xo-ssh-user"]) or DEFAULT_SSH_USER,
    )
