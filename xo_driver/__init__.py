"""xo-machine-driver package."""

__all__ = [
    "cli",
    "client",
    "cloudinit",
    "config",
    "constants",
    "driver",
    "exceptions",
    "models",
    "polling",
    "ssh",
    "state",
    "store",
    "utils",
]
