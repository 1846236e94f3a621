"""Exceptions raised while talking to the lock or the certificate service.

Every provisioning failure derives from :class:`ProvisioningError`; the
state machine aborts the run on the first one it sees.
"""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base class for errors that abort a provisioning run."""


class TransportError(ProvisioningError, ConnectionError):
    """The HID read/write primitive failed, timed out, or no device is attached."""


class FrameTooLarge(ProvisioningError, ValueError):
    """A command does not fit in the 16-bit length field of a frame."""


class MalformedResponse(ProvisioningError, ValueError):
    """A device response could not be interpreted."""


class RemoteServiceError(ProvisioningError):
    """The certificate service call failed or returned an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
