"""Single owned slot for the attached lock, plus the presence poller.

The poller and an in-flight provisioning exchange both go through the
slot's lock: a handle is only attached or detached between exchanges.
Reading ``present`` or ``connection`` never waits on an exchange.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from ..errors import TransportError
from .usb_connection import PRODUCT_ID, VENDOR_ID, HIDConnection, device_present

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 100


class DeviceSlot:
    """Holds the current :class:`HIDConnection`, or nothing when unplugged."""

    def __init__(self, connection: HIDConnection | None = None) -> None:
        self._lock = threading.RLock()
        self._connection = connection

    @property
    def present(self) -> bool:
        conn = self._connection
        return conn is not None and conn.connected

    @property
    def connection(self) -> HIDConnection | None:
        return self._connection

    @contextmanager
    def hold(self) -> Iterator[HIDConnection]:
        """Yield the attached connection, keeping it in place until exit.

        Raises:
            TransportError: If no device is attached.
        """
        with self._lock:
            conn = self._connection
            if conn is None or not conn.connected:
                raise TransportError("No lock attached")
            yield conn

    def attach(self, connection: HIDConnection) -> None:
        with self._lock:
            previous, self._connection = self._connection, connection
        if previous is not None and previous is not connection:
            previous.close()

    def detach(self) -> HIDConnection | None:
        with self._lock:
            previous, self._connection = self._connection, None
        if previous is not None:
            previous.close()
        return previous


class DevicePoller(threading.Thread):
    """Background thread that keeps a :class:`DeviceSlot` in sync with USB.

    Every ``interval_ms`` it checks whether the target lock is enumerated,
    opens a connection when one appears and drops it when it disappears.
    ``on_change`` receives ``True``/``False`` on each transition.
    """

    def __init__(
        self,
        slot: DeviceSlot,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        interval_ms: int = POLL_INTERVAL_MS,
        on_change: Callable[[bool], None] | None = None,
        probe: Callable[[int, int], bool] = device_present,
        connect: Callable[[int, int], HIDConnection] | None = None,
    ) -> None:
        super().__init__(name="lock-device-poller", daemon=True)
        self._slot = slot
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._interval = interval_ms / 1000
        self._on_change = on_change
        self._probe = probe
        self._connect = connect or _open_connection
        self._stopped = threading.Event()

    def poll_once(self) -> None:
        """Run a single presence check and update the slot."""
        try:
            found = self._probe(self._vendor_id, self._product_id)
        except OSError as e:
            logger.debug("Device enumeration failed: %s", e)
            return

        if found and not self._slot.present:
            try:
                conn = self._connect(self._vendor_id, self._product_id)
            except TransportError as e:
                logger.warning("Lock detected but could not be opened: %s", e)
                return
            self._slot.attach(conn)
            logger.info("Lock attached")
            self._notify(True)
        elif not found and self._slot.connection is not None:
            self._slot.detach()
            logger.info("Lock removed")
            self._notify(False)

    def run(self) -> None:
        while not self._stopped.is_set():
            self.poll_once()
            self._stopped.wait(self._interval)

    def stop(self) -> None:
        self._stopped.set()

    def _notify(self, connected: bool) -> None:
        if self._on_change is not None:
            self._on_change(connected)


def _open_connection(vendor_id: int, product_id: int) -> HIDConnection:
    conn = HIDConnection(vendor_id, product_id)
    conn.open()
    return conn
