"""Interpretation of lock responses.

Responses are raw reassembled frames; fields are read at fixed offsets
from the start of the frame (marker included).
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import MalformedResponse

MAC_OFFSET = 17
MAC_LENGTH = 6
IMEI_OFFSET = MAC_OFFSET + MAC_LENGTH
IMEI_LENGTH = 15
CSR_OFFSET = 17
CSR_END_MARKER = "-----END CERTIFICATE REQUEST-----"


@dataclass
class LockInfo:
    """Identifiers reported by the "get device info" command."""

    lock_mac: str
    imei: str

    def to_dict(self) -> dict:
        return {"lock_mac": self.lock_mac, "imei": self.imei}


def parse_lock_info(response: bytes) -> LockInfo:
    """Extract the MAC address (bytes 17-22) and IMEI (bytes 23-37).

    The MAC is rendered as colon-separated uppercase hex. Each IMEI byte is
    an ASCII digit; its value minus 48 is appended to the IMEI string.

    Raises:
        MalformedResponse: If the response is too short to hold both fields.
    """
    end = IMEI_OFFSET + IMEI_LENGTH
    if len(response) < end:
        raise MalformedResponse(
            f"Device info response is {len(response)} bytes, expected at least {end}"
        )

    mac_bytes = response[MAC_OFFSET:IMEI_OFFSET]
    lock_mac = ":".join(f"{b:02X}" for b in mac_bytes)
    imei = "".join(str(b - 48) for b in response[IMEI_OFFSET:end])
    return LockInfo(lock_mac=lock_mac, imei=imei)


def parse_csr(response: bytes) -> str:
    """Extract the PEM certificate signing request from a CSR response.

    The PEM block starts at offset 17 of the decoded response and runs
    through the end of the ``-----END CERTIFICATE REQUEST-----`` line.

    Raises:
        MalformedResponse: If the end marker is missing.
    """
    text = bytes(response).decode("utf-8", errors="replace")
    index = text.find(CSR_END_MARKER)
    if index < 0:
        raise MalformedResponse("CSR response does not contain an end marker")
    if index < CSR_OFFSET:
        raise MalformedResponse(
            f"CSR end marker found at offset {index}, before the CSR start offset"
        )
    return text[CSR_OFFSET : index + len(CSR_END_MARKER)]
