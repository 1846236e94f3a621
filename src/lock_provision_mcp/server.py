"""MCP server entry point for lock provisioning.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport. A background poller keeps
the device slot in sync with the USB bus; ``provision_lock`` walks the
attached lock through the full provisioning sequence.
"""

from __future__ import annotations

import functools
import json
import logging
import threading
from typing import Any

from anyio import to_thread
from mcp.server.fastmcp import FastMCP

from .api.client import CertificateServiceClient
from .config import ProvisionerConfig, config_from_env
from .errors import TransportError
from .models.lock_store import JsonLockStore, LockStore, MemoryLockStore
from .models.session import ProvisioningSession
from .provisioning.progress import EventLog
from .provisioning.state_machine import Provisioner
from .transport.chunked import ChunkedTransport
from .transport.device_slot import DevicePoller, DeviceSlot
from .transport.usb_connection import HIDConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "lock-provision",
    instructions="Provision USB-attached locks with certificates and keys",
)

# Global server state
_config: ProvisionerConfig | None = None
_slot = DeviceSlot()
_events = EventLog()
_store: LockStore | None = None
_provisioner: Provisioner | None = None
_poller: DevicePoller | None = None
_last_session: ProvisioningSession | None = None
_cancel = threading.Event()


def _get_config() -> ProvisionerConfig:
    global _config
    if _config is None:
        _config = config_from_env()
    return _config


def _get_store() -> LockStore:
    global _store
    if _store is None:
        path = _get_config().store.path
        _store = JsonLockStore(path) if path else MemoryLockStore()
    return _store


def _get_provisioner() -> Provisioner:
    """Build the provisioner from configuration on first use."""
    global _provisioner
    if _provisioner is None:
        config = _get_config()
        transport = ChunkedTransport(
            _slot,
            reporter=_events,
            response_timeout=config.transport.response_timeout_s,
            read_slice_ms=config.transport.read_slice_ms,
        )
        service = CertificateServiceClient(
            base_url=config.service.base_url,
            token=config.service.token,
            timeout=config.service.timeout_s,
        )
        _provisioner = Provisioner(transport, service, _get_store(), reporter=_events)
    return _provisioner


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def device_status() -> dict[str, Any]:
    """Report whether a lock is attached and whether a run is in progress."""
    conn = _slot.connection
    result: dict[str, Any] = {
        "connected": _slot.present,
        "provisioning": _provisioner is not None and _provisioner.running,
        "poller_running": _poller is not None and _poller.is_alive(),
    }
    if conn is not None and conn.connected:
        result["device"] = conn.device_info.to_dict()
        result["backend"] = conn.backend
    return result


@mcp.tool()
def connect() -> dict[str, Any]:
    """Open the lock by USB vendor/product ID without waiting for the poller."""
    if _slot.present:
        return {"connected": True, "message": "Already connected"}

    device = _get_config().device
    conn = HIDConnection(device.vendor_id, device.product_id)
    try:
        info = conn.open()
    except TransportError as e:
        return {"connected": False, "error": str(e)}
    _slot.attach(conn)
    _events.connected(True)
    return {"connected": True, **info.to_dict()}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the USB connection to the lock."""
    if _slot.detach() is not None:
        _events.connected(False)
    return {"disconnected": True}


# ─── PROVISIONING TOOLS ──────────────────────────────────────────────

@mcp.tool()
async def provision_lock() -> dict[str, Any]:
    """Provision the attached lock.

    Reads the lock's MAC address and IMEI, has it generate a CSR, obtains a
    certificate for it, then sends the certificate, device private key,
    device CA and server CA. Stops at the first failure. The run happens on
    a worker thread; use cancel_provisioning to abort it.
    """
    global _last_session
    provisioner = _get_provisioner()
    if provisioner.running:
        return {"error": "A provisioning run is already in progress"}
    _cancel.clear()
    try:
        session = await to_thread.run_sync(
            functools.partial(provisioner.run, cancel=_cancel)
        )
    except RuntimeError as e:
        return {"error": str(e)}

    _last_session = session
    result = session.to_dict()
    result["success"] = session.error is None
    return result


@mcp.tool()
def cancel_provisioning() -> dict[str, Any]:
    """Abort the provisioning run in progress at its current device exchange."""
    if _provisioner is None or not _provisioner.running:
        return {"cancelled": False, "message": "No provisioning run in progress"}
    _cancel.set()
    return {"cancelled": True}


@mcp.tool()
def provisioning_progress() -> dict[str, Any]:
    """Step list of the current or most recent run, plus any alerts."""
    return {
        "steps": [e.to_dict() for e in _events.events],
        "alerts": _events.alerts,
        "lock": _events.current_lock,
        "session": _last_session.to_dict() if _last_session else None,
    }


@mcp.tool()
def device_logs(limit: int = 100) -> dict[str, Any]:
    """Raw hex dumps of the most recent reports sent and chunks received.

    Args:
        limit: Maximum number of entries to return (newest last).
    """
    dumps = _events.dumps
    if limit > 0:
        dumps = dumps[-limit:]
    return {"entries": dumps, "count": len(dumps)}


@mcp.tool()
def clear_logs() -> dict[str, bool]:
    """Forget recorded steps, hex dumps and alerts."""
    _events.clear()
    return {"cleared": True}


# ─── LOCK RECORD TOOLS ───────────────────────────────────────────────

@mcp.tool()
def list_locks() -> dict[str, Any]:
    """List every lock record created by provisioning runs."""
    records = _get_store().list()
    return {"locks": [r.to_dict() for r in records], "count": len(records)}


@mcp.tool()
def get_lock(record_id: int) -> dict[str, Any]:
    """Get one lock record.

    Args:
        record_id: Record ID assigned when the run started.
    """
    record = _get_store().get(record_id)
    if record is None:
        return {"error": f"No lock record {record_id}"}
    return record.to_dict()


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("lock://device/status")
def resource_device_status() -> str:
    """Connection state of the lock."""
    return json.dumps(device_status())


@mcp.resource("lock://locks/list")
def resource_locks_list() -> str:
    """All lock records."""
    return json.dumps(list_locks())


@mcp.resource("lock://logs/usb")
def resource_usb_logs() -> str:
    """Recent USB hex dumps."""
    return json.dumps(device_logs())


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def start_poller() -> DevicePoller:
    """Start the background presence poller if it is not already running."""
    global _poller
    if _poller is None or not _poller.is_alive():
        device = _get_config().device
        _poller = DevicePoller(
            _slot,
            vendor_id=device.vendor_id,
            product_id=device.product_id,
            interval_ms=device.poll_interval_ms,
            on_change=_events.connected,
        )
        _poller.start()
    return _poller


def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    start_poller()
    try:
        mcp.run(transport="stdio")
    finally:
        if _poller is not None:
            _poller.stop()
        _slot.detach()


if __name__ == "__main__":
    main()
