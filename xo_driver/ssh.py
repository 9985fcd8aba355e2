"""SSH key pair helpers (thin wrapper over ssh-keygen)."""

from __future__ import annotations

import subprocess
from pathlib import Path

from xo_driver.constants import SSH_KEY_BITS
from xo_driver.exceptions import KeyGenerationError, KeyReadError
from xo_driver.utils import ensure_directory, log, run


def generate_ssh_key(path: Path) -> None:
    """Create an unencrypted RSA key pair at ``path`` and ``path``.pub."""
    try:
        ensure_directory(path.parent)
        for candidate in (path, public_key_path(path)):
            candidate.unlink(missing_ok=True)
        run(
            ["ssh-keygen", "-q", "-t", "rsa", "-b", str(SSH_KEY_BITS), "-N", "", "-C", path.parent.name, "-f", str(path)],
            capture_output=True,
        )
    except FileNotFoundError as exc:
        raise KeyGenerationError("ssh-keygen not found; install the OpenSSH client tools") from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise KeyGenerationError(f"ssh-keygen failed for {path}: {stderr or exc}") from exc
    except OSError as exc:
        raise KeyGenerationError(f"Cannot create SSH key at {path}: {exc}") from exc
    log("DEBUG", f"Generated SSH key {path}")


def public_key_path(path: Path) -> Path:
    return path.with_name(path.name + ".pub")


def read_public_key(path: Path) -> str:
    pub = public_key_path(path)
    try:
        content = pub.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise KeyReadError(f"Cannot read public key {pub}: {exc}") from exc
    if not content:
        raise KeyReadError(f"Public key {pub} is empty")
    return content
