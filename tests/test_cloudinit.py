"""Tests for xo_driver.cloudinit module."""

from __future__ import annotations

import bcrypt
import yaml

from xo_driver.cloudinit import render_default_cloud_config


class TestRenderDefaultCloudConfig:
    def test_authorizes_key(self, public_key):
        rendered = render_default_cloud_config(public_key + "\n", "root")
        assert rendered.startswith("#cloud-config\n")
        data = yaml.safe_load(rendered)
        assert data == {"ssh_authorized_keys": [public_key]}

    def test_password_is_hashed(self, public_key):
        rendered = render_default_cloud_config(public_key, "debian", password="hunter2")

        assert "hunter2" not in rendered
        data = yaml.safe_load(rendered)
        user = data["chpasswd"]["users"][0]
        assert user["name"] == "debian"
        assert user["type"] == "hash"
        assert bcrypt.checkpw(b"hunter2", user["password"].encode("utf-8"))
        assert data["chpasswd"]["expire"] is False
        assert data["ssh_pwauth"] is True
