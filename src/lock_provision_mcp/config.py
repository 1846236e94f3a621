"""Configuration for the lock provisioning server."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .api.client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from .transport.device_slot import POLL_INTERVAL_MS
from .transport.usb_connection import PRODUCT_ID, READ_TIMEOUT_MS, VENDOR_ID

CONFIG_ENV_VAR = "LOCK_PROVISION_CONFIG"


class DeviceConfig(BaseModel):
    """Target lock identity and presence polling."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    poll_interval_ms: int = Field(default=POLL_INTERVAL_MS, gt=0)


class TransportConfig(BaseModel):
    """Response wait behaviour.

    ``response_timeout_s`` of None waits until the lock answers or errors.
    """

    response_timeout_s: Optional[float] = Field(default=None, gt=0)
    read_slice_ms: int = Field(default=READ_TIMEOUT_MS, gt=0)


class ServiceConfig(BaseModel):
    """Certificate service connection."""

    base_url: str = DEFAULT_BASE_URL
    token: Optional[str] = None
    timeout_s: float = Field(default=DEFAULT_TIMEOUT, gt=0)


class StoreConfig(BaseModel):
    """Lock record storage; records stay in memory when ``path`` is unset."""

    path: Optional[str] = None


class ProvisionerConfig(BaseModel):
    """Complete server configuration."""

    device: DeviceConfig = DeviceConfig()
    transport: TransportConfig = TransportConfig()
    service: ServiceConfig = ServiceConfig()
    store: StoreConfig = StoreConfig()


def load_config(config_path: Path) -> ProvisionerConfig:
    """Load configuration from file.

    Supports YAML and JSON formats.

    Args:
        config_path: Path to configuration file

    Returns:
        ProvisionerConfig object
    """
    config_path = Path(config_path)
    with open(config_path) as f:
        if config_path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif config_path.suffix == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config format: {config_path.suffix}")

    return ProvisionerConfig(**(data or {}))


def config_from_env() -> ProvisionerConfig:
    """Load the file named by ``LOCK_PROVISION_CONFIG``, or use defaults."""
    path = os.environ.get(CONFIG_ENV_VAR)
    if path:
        return load_config(Path(path))
    return ProvisionerConfig()

