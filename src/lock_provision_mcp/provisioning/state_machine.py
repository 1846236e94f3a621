"""Ordered provisioning sequence for one lock.

Steps, each awaited before the next::

    get_info -> request_csr -> upload_csr -> forward_crt -> fetch_keys
      -> forward_device_private_key -> forward_device_ca -> forward_server_ca

The first :class:`ProvisioningError` aborts the run. Its message is
alerted once and the session is left in ``Failed`` with whatever fields
had been learned so far.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..errors import ProvisioningError, RemoteServiceError
from ..models.session import ProvisioningSession, ProvisioningState
from ..protocol.commands import (
    KeySlot,
    build_forward_crt,
    build_forward_key,
    build_get_info,
    build_request_csr,
)
from ..protocol.parser import parse_csr, parse_lock_info
from .progress import DONE, NullReporter, ProgressReporter

if TYPE_CHECKING:
    from ..api.client import CertificateService, DeviceKeys
    from ..models.lock_store import LockStore
    from ..transport.chunked import ChunkedTransport

logger = logging.getLogger(__name__)

REQUESTING_INFO = "Requesting lock info..."
REQUESTING_CSR = "Requesting csr..."
UPLOADING_CSR = "Uploading csr from server..."
SENDING_CRT = "Sending crt..."
FETCHING_KEYS = "Fetching keys from server..."
SENDING_PRIVATE_KEY = "Sending device private key..."
SENDING_DEVICE_CA = "Sending device CA..."
SENDING_SERVER_CA = "Sending server CA..."


class Provisioner:
    """Runs the provisioning sequence against the attached lock.

    Only one run may be active per provisioner (and so per device slot);
    a second concurrent :meth:`run` raises ``RuntimeError``.
    """

    def __init__(
        self,
        transport: ChunkedTransport,
        service: CertificateService,
        store: LockStore,
        reporter: ProgressReporter | None = None,
    ) -> None:
        self._transport = transport
        self._service = service
        self._store = store
        self._reporter = reporter or NullReporter()
        self._running = threading.Lock()
        self._cancel: threading.Event | None = None

    @property
    def running(self) -> bool:
        return self._running.locked()

    def run(self, cancel: threading.Event | None = None) -> ProvisioningSession:
        """Provision the attached lock from start to ``Done`` or ``Failed``.

        Args:
            cancel: Setting this event aborts the current device exchange.

        Returns:
            The session, in state ``Done`` or ``Failed``.
        """
        if not self._running.acquire(blocking=False):
            raise RuntimeError("A provisioning run is already in progress")
        self._cancel = cancel
        self._reporter.start_run()
        session = ProvisioningSession()
        try:
            self._run_steps(session)
        except ProvisioningError as e:
            logger.warning("Provisioning aborted in state %s: %s", session.state.value, e)
            session.fail(str(e))
            self._reporter.alert(str(e))
        finally:
            self._cancel = None
            self._running.release()
        return session

    def _run_steps(self, session: ProvisioningSession) -> None:
        self.get_info(session)
        self.request_csr(session)
        self.upload_csr(session)
        self.forward_crt(session)
        keys = self.fetch_keys(session)
        self.forward_device_private_key(session, keys.private_key)
        self.forward_device_ca(session, keys.ca)
        self.forward_server_ca(session, keys.root_ca)
        self._update(session, DONE)
        session.advance(ProvisioningState.DONE)
        logger.info("Lock %s provisioned", session.lock_mac)

    # ─── STEPS ─────────────────────────────────────────────────────────

    def get_info(self, session: ProvisioningSession) -> None:
        """Create the lock record and read the MAC address and IMEI."""
        record = self._store.create()
        session.record_id = record.id
        self._update(session, REQUESTING_INFO)

        response = self._exchange(build_get_info())
        info = parse_lock_info(response)
        session.lock_mac = info.lock_mac
        session.imei = info.imei
        record = self._store.update(record.id, lock_mac=info.lock_mac, imei=info.imei)
        self._reporter.lock_info(record)
        session.advance(ProvisioningState.INFO)

    def request_csr(self, session: ProvisioningSession) -> None:
        self._update(session, REQUESTING_CSR)
        response = self._exchange(build_request_csr())
        session.csr = parse_csr(response)
        session.advance(ProvisioningState.CSR)

    def upload_csr(self, session: ProvisioningSession) -> None:
        self._update(session, UPLOADING_CSR)
        issued = self._service.upload_csr(session.lock_mac, session.imei, session.csr)
        session.certificate = issued.certificate
        session.advance(ProvisioningState.CSR_UPLOADED)

    def forward_crt(self, session: ProvisioningSession) -> None:
        self._update(session, SENDING_CRT)
        self._exchange(_frame(build_forward_crt, session.certificate))
        session.advance(ProvisioningState.CRT_FORWARDED)

    def fetch_keys(self, session: ProvisioningSession) -> DeviceKeys:
        """Fetch key material once; it is sent to the lock by the next three steps."""
        self._update(session, FETCHING_KEYS)
        keys = self._service.get_keys()
        session.private_key = keys.private_key
        session.device_ca = keys.ca
        session.root_ca = keys.root_ca
        session.advance(ProvisioningState.KEYS_FETCHED)
        return keys

    def forward_device_private_key(self, session: ProvisioningSession, private_key: str) -> None:
        self._update(session, SENDING_PRIVATE_KEY)
        self._exchange(_frame(build_forward_key, KeySlot.DEVICE_PRIVATE_KEY, private_key))
        session.advance(ProvisioningState.PRIVATE_KEY_FORWARDED)

    def forward_device_ca(self, session: ProvisioningSession, device_ca: str) -> None:
        self._update(session, SENDING_DEVICE_CA)
        self._exchange(_frame(build_forward_key, KeySlot.DEVICE_CA, device_ca))
        session.advance(ProvisioningState.DEVICE_CA_FORWARDED)

    def forward_server_ca(self, session: ProvisioningSession, server_ca: str) -> None:
        self._update(session, SENDING_SERVER_CA)
        self._exchange(_frame(build_forward_key, KeySlot.SERVER_CA, server_ca))
        session.advance(ProvisioningState.SERVER_CA_FORWARDED)

    # ─── HELPERS ───────────────────────────────────────────────────────

    def _exchange(self, frame: bytes) -> bytes:
        return self._transport.write_and_read(frame, cancel=self._cancel)

    def _update(self, session: ProvisioningSession, label: str) -> None:
        """Record the step label on the session, the lock record and the reporter."""
        session.step = label
        record = self._store.update(session.record_id, provisioning=label)
        if label == DONE:
            self._reporter.step(label, state=None)
        else:
            self._reporter.step(label)
        self._reporter.lock_info(record)


def _frame(builder: Callable[..., bytes], *args: Any) -> bytes:
    """Build a frame from remote-supplied text, reporting unsendable text as a provisioning error."""
    try:
        return builder(*args)
    except ValueError as e:
        if isinstance(e, ProvisioningError):
            raise
        raise RemoteServiceError(f"Certificate service returned unsendable text: {e}") from e
