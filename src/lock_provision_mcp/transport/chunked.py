"""Report-at-a-time transport for framed commands.

A frame is written as consecutive 64-byte reports; the response is read
chunk by chunk into a :class:`ResponseBuffer` until its declared length
has arrived.
"""

from __future__ import annotations

import logging
import threading
import time

from ..errors import TransportError
from ..protocol.framing import ResponseBuffer, split_reports
from ..provisioning.progress import NullReporter, ProgressReporter
from .device_slot import DeviceSlot
from .usb_connection import HIDConnection, READ_TIMEOUT_MS

logger = logging.getLogger(__name__)

SEND = "Send"
RECEIVED = "Received"


class ChunkedTransport:
    """Writes frames and reassembles responses over the device slot.

    Args:
        slot: The slot holding the attached lock.
        reporter: Receives a hex dump of every report sent and chunk received.
        response_timeout: Seconds to wait for a complete response, or None
            to wait until the device answers or errors.
        read_slice_ms: Timeout of each underlying HID read; bounds how late
            a deadline or cancellation is noticed.
    """

    def __init__(
        self,
        slot: DeviceSlot,
        reporter: ProgressReporter | None = None,
        response_timeout: float | None = None,
        read_slice_ms: int = READ_TIMEOUT_MS,
    ) -> None:
        self._slot = slot
        self._reporter = reporter or NullReporter()
        self._response_timeout = response_timeout
        self._read_slice_ms = read_slice_ms

    def write(self, frame: bytes) -> None:
        """Send a frame to the lock, one 64-byte report per write."""
        with self._slot.hold() as conn:
            self._write(conn, frame)

    def read(
        self,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> bytes:
        """Block until a complete response has been received.

        Args:
            timeout: Overrides the configured response timeout for this call.
            cancel: When set, the wait is abandoned.

        Raises:
            TransportError: On a read failure, timeout or cancellation. Any
                partially received bytes are discarded.
        """
        with self._slot.hold() as conn:
            return self._read(conn, timeout, cancel)

    def write_and_read(
        self,
        frame: bytes,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> bytes:
        """Send a frame and return the full response, holding the device throughout."""
        with self._slot.hold() as conn:
            self._write(conn, frame)
            return self._read(conn, timeout, cancel)

    def _write(self, conn: HIDConnection, frame: bytes) -> None:
        for report in split_reports(frame):
            hex_dump = report.hex()
            logger.debug("Send: %s", hex_dump)
            self._reporter.data(SEND, hex_dump)
            conn.write(report)

    def _read(
        self,
        conn: HIDConnection,
        timeout: float | None,
        cancel: threading.Event | None,
    ) -> bytes:
        if timeout is None:
            timeout = self._response_timeout
        deadline = None if timeout is None else time.monotonic() + timeout
        buffer = ResponseBuffer()

        while True:
            if cancel is not None and cancel.is_set():
                raise TransportError("Response wait cancelled")
            if deadline is not None and time.monotonic() >= deadline:
                raise TransportError(
                    f"No complete response within {timeout:g}s "
                    f"({len(buffer.received)} bytes received)"
                )

            chunk = conn.read(self._read_slice_ms)
            if not chunk:
                continue

            hex_dump = chunk.hex()
            logger.debug("Received: %s", hex_dump)
            self._reporter.data(RECEIVED, hex_dump)

            response = buffer.feed(chunk)
            if response is not None:
                return response
