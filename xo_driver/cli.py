"""CLI entry points for xo-machine-driver."""

from __future__ import annotations

import argparse
import dataclasses
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from xo_driver.config import OPTIONS, build_machine_config
from xo_driver.constants import _SENSITIVE_FIELDS, DEFAULT_STORAGE_PATH
from xo_driver.driver import Driver
from xo_driver.exceptions import ConfigurationError, DriverError, RemoteQueryError
from xo_driver.models import MachineConfig
from xo_driver.store import MachineStore
from xo_driver.utils import log, mask_secret


def show_config(cfg: MachineConfig) -> None:
    """Print the stored machine configuration with secrets masked."""
    for field in dataclasses.fields(cfg):
        value = getattr(cfg, field.name)
        if field.name in _SENSITIVE_FIELDS:
            print(f"  {field.name}: {mask_secret(value)}")
        elif field.name == "cloud_config" and value:
            print(f"  {field.name}: <{len(value.splitlines())} lines>")
        else:
            print(f"  {field.name}: {value if value is not None else ''}")


def list_flags() -> None:
    """Print the create options with their environment variables and defaults."""
    width = max(len(opt.name) for opt in OPTIONS) + 2
    for opt in OPTIONS:
        default = "" if opt.default is None else f" (default: {opt.default})"
        required = " [required]" if opt.required else ""
        print(f"  --{opt.name:<{width}} {opt.usage}{required}{default}  [${opt.env_var}]")


def _add_create_options(parser: argparse.ArgumentParser) -> None:
    for opt in OPTIONS:
        flag = f"--{opt.name}"
        help_text = f"{opt.usage} [${opt.env_var}]"
        if opt.kind == "bool":
            parser.add_argument(flag, dest=opt.field, action="store_true", default=None, help=help_text)
        else:
            parser.add_argument(flag, dest=opt.field, default=None, metavar=opt.kind.upper(), help=help_text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="xo-machine", description="Provision machines on Xen Orchestra")
    parser.add_argument(
        "--storage-path",
        type=Path,
        default=DEFAULT_STORAGE_PATH,
        help="Directory holding machine records and keys [$XO_MACHINE_STORAGE_PATH]",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a machine")
    _add_create_options(create)
    create.add_argument("name")

    for command, help_text in (
        ("start", "Start a machine"),
        ("stop", "Gracefully stop a machine"),
        ("kill", "Force a machine off"),
        ("restart", "Restart a machine"),
        ("status", "Print the machine state"),
        ("url", "Print the Docker engine URL"),
        ("ip", "Print the machine IP address"),
        ("inspect", "Print the stored machine configuration"),
    ):
        sub.add_parser(command, help=help_text).add_argument("name")

    rm = sub.add_parser("rm", help="Remove a machine and its VM")
    rm.add_argument("-f", "--force", action="store_true", help="Remove the local record even if VM deletion fails")
    rm.add_argument("name")

    sub.add_parser("ls", help="List machines")
    sub.add_parser("flags", help="List create options")
    return parser


def _cmd_create(args: argparse.Namespace, store: MachineStore) -> int:
    if store.exists(args.name):
        raise ConfigurationError(f"Machine '{args.name}' already exists")
    opts: Dict[str, Any] = {opt.name: getattr(args, opt.field) for opt in OPTIONS}
    cfg = build_machine_config(args.name, store.machine_dir(args.name), opts)
    driver = Driver(cfg)
    try:
        driver.create()
    finally:
        # keep the record once a VM exists so that `rm` can clean it up
        if cfg.vm_id:
            store.save(cfg)
    log("SUCCESS", f"Machine {cfg.machine_name} is ready at {driver.get_url()}")
    return 0


def _cmd_rm(args: argparse.Namespace, store: MachineStore) -> int:
    cfg = store.load(args.name)
    driver = Driver(cfg)
    try:
        driver.remove()
    except DriverError as exc:
        if not args.force:
            raise
        log("WARN", f"Removing local record despite error: {exc}")
    store.remove(args.name)
    log("SUCCESS", f"Removed machine {args.name}")
    return 0


def _cmd_status(args: argparse.Namespace, store: MachineStore) -> int:
    driver = Driver(store.load(args.name))
    try:
        state = driver.get_state()
    except RemoteQueryError as exc:
        print(exc.state)
        raise
    print(state)
    return 0


def _verb(action: str) -> Callable[[argparse.Namespace, MachineStore], int]:
    def _run(args: argparse.Namespace, store: MachineStore) -> int:
        getattr(Driver(store.load(args.name)), action)()
        return 0

    return _run


def _printer(getter: str) -> Callable[[argparse.Namespace, MachineStore], int]:
    def _run(args: argparse.Namespace, store: MachineStore) -> int:
        print(getattr(Driver(store.load(args.name)), getter)())
        return 0

    return _run


def _cmd_inspect(args: argparse.Namespace, store: MachineStore) -> int:
    show_config(store.load(args.name))
    return 0


def _cmd_ls(args: argparse.Namespace, store: MachineStore) -> int:
    for name in store.list():
        print(name)
    return 0


def _cmd_flags(args: argparse.Namespace, store: MachineStore) -> int:
    list_flags()
    return 0


COMMANDS: Dict[str, Callable[[argparse.Namespace, MachineStore], int]] = {
    "create": _cmd_create,
    "start": _verb("start"),
    "stop": _verb("stop"),
    "kill": _verb("kill"),
    "restart": _verb("restart"),
    "rm": _cmd_rm,
    "status": _cmd_status,
    "url": _printer("get_url"),
    "ip": _printer("get_ip"),
    "inspect": _cmd_inspect,
    "ls": _cmd_ls,
    "flags": _cmd_flags,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    store = MachineStore(args.storage_path)
    try:
        return COMMANDS[args.command](args, store)
    except DriverError as exc:
        log("ERROR", str(exc))
        return 1
