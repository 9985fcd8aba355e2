"""Default cloud-init user-data for machines created without xo-cloud-config."""

from __future__ import annotations

from typing import Dict, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from xo_driver.utils import hash_password


def render_default_cloud_config(public_key: str, ssh_user: str, password: Optional[str] = None) -> str:
    """Render a #cloud-config that authorizes ``public_key``.

    When ``password`` is given only its bcrypt hash is written.
    """
    cfg: Dict[str, object] = {"ssh_authorized_keys": [public_key.strip()]}
    if password:
        cfg["chpasswd"] = {
            "expire": False,
            "users": [{"name": ssh_user, "password": hash_password(password), "type": "hash"}],
        }
        cfg["ssh_pwauth"] = True
    return "#cloud-config\n" + yaml.safe_dump(cfg, sort_keys=False, default_flow_style=False)
