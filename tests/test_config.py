"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from lock_provision_mcp.config import (
    CONFIG_ENV_VAR,
    ProvisionerConfig,
    config_from_env,
    load_config,
)


def test_defaults():
    config = ProvisionerConfig()
    assert config.device.vendor_id == 0x2FE3
    assert config.device.product_id == 0x0100
    assert config.device.poll_interval_ms == 100
    assert config.transport.response_timeout_s is None
    assert config.store.path is None


def test_load_yaml(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "device:\n"
        "  vendor_id: 4660\n"
        "transport:\n"
        "  response_timeout_s: 5\n"
        "service:\n"
        "  base_url: https://ca.example.com/api\n"
        "  token: secret\n"
    )
    config = load_config(path)
    assert config.device.vendor_id == 0x1234
    assert config.device.product_id == 0x0100
    assert config.transport.response_timeout_s == 5
    assert config.service.base_url == "https://ca.example.com/api"
    assert config.service.token == "secret"


def test_load_empty_yaml(tmp_path: Path):
    path = tmp_path / "config.yml"
    path.write_text("")
    assert load_config(path) == ProvisionerConfig()


def test_unsupported_format(tmp_path: Path):
    path = tmp_path / "config.toml"
    path.write_text("")
    with pytest.raises(ValueError):
        load_config(path)


def test_rejects_non_positive_timeout():
    with pytest.raises(ValidationError):
        ProvisionerConfig(transport={"response_timeout_s": 0})


def test_config_from_env(tmp_path: Path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text('{"device": {"poll_interval_ms": 250}}')
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    assert config_from_env().device.poll_interval_ms == 250


def test_config_from_env_defaults(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert config_from_env() == ProvisionerConfig()
