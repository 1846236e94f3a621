"""Provisioning session: one lock walked through the step sequence."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProvisioningState(str, Enum):
    """Progress of a run. Transitions only move forward, one step at a time."""

    NOT_STARTED = "NotStarted"
    INFO = "Info"
    CSR = "Csr"
    CSR_UPLOADED = "CsrUploaded"
    CRT_FORWARDED = "CrtForwarded"
    KEYS_FETCHED = "KeysFetched"
    PRIVATE_KEY_FORWARDED = "PrivateKeyForwarded"
    DEVICE_CA_FORWARDED = "DeviceCAForwarded"
    SERVER_CA_FORWARDED = "ServerCAForwarded"
    DONE = "Done"
    FAILED = "Failed"


STATE_ORDER: tuple[ProvisioningState, ...] = (
    ProvisioningState.NOT_STARTED,
    ProvisioningState.INFO,
    ProvisioningState.CSR,
    ProvisioningState.CSR_UPLOADED,
    ProvisioningState.CRT_FORWARDED,
    ProvisioningState.KEYS_FETCHED,
    ProvisioningState.PRIVATE_KEY_FORWARDED,
    ProvisioningState.DEVICE_CA_FORWARDED,
    ProvisioningState.SERVER_CA_FORWARDED,
    ProvisioningState.DONE,
)

TERMINAL_STATES = frozenset({ProvisioningState.DONE, ProvisioningState.FAILED})


@dataclass
class ProvisioningSession:
    """Everything learned about one lock during a run.

    Certificate and key material is kept as opaque text.
    """

    record_id: int | None = None
    lock_mac: str | None = None
    imei: str | None = None
    state: ProvisioningState = ProvisioningState.NOT_STARTED
    step: str | None = None
    csr: str | None = None
    certificate: str | None = None
    private_key: str | None = None
    device_ca: str | None = None
    root_ca: str | None = None
    error: str | None = None
    failed_at: ProvisioningState | None = None

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, state: ProvisioningState) -> None:
        """Move to the next state in order.

        Raises:
            ValueError: If ``state`` is not the immediate successor.
        """
        if self.finished:
            raise ValueError(f"Session already finished in state {self.state.value}")
        expected = STATE_ORDER[STATE_ORDER.index(self.state) + 1]
        if state is not expected:
            raise ValueError(
                f"Cannot move from {self.state.value} to {state.value}; "
                f"next state is {expected.value}"
            )
        self.state = state

    def fail(self, message: str) -> None:
        self.failed_at = self.state
        self.state = ProvisioningState.FAILED
        self.error = message

    def to_dict(self) -> dict[str, Any]:
        """Summary without key material."""
        return {
            "record_id": self.record_id,
            "lock_mac": self.lock_mac,
            "imei": self.imei,
            "state": self.state.value,
            "step": self.step,
            "has_csr": self.csr is not None,
            "has_certificate": self.certificate is not None,
            "error": self.error,
            "failed_at": self.failed_at.value if self.failed_at else None,
        }
