"""Opcode constants and command builders for the lock provisioning protocol.

Every command starts with a 4-byte opcode. Certificate and key transfers
follow the opcode with 8 reserved zero bytes; key transfers add a one-byte
slot discriminator before the PEM text.
"""

from __future__ import annotations

from enum import IntEnum

from .framing import build_frame

GET_INFO = bytes([0, 1, 64, 0])
REQUEST_CSR = bytes([0, 1, 64, 1])
FORWARD_CRT = bytes([0, 1, 64, 2])
FORWARD_KEY = bytes([0, 1, 64, 3])
RESERVED = bytes(8)


class KeySlot(IntEnum):
    """Destination slot for key material sent with ``FORWARD_KEY``."""

    SERVER_CA = 1
    DEVICE_CA = 2
    DEVICE_PRIVATE_KEY = 3


def encode_text(text: str) -> bytes:
    """Encode PEM text one byte per character.

    Raises:
        ValueError: If a character has a code point above 0xFF.
    """
    try:
        return text.encode("latin-1")
    except UnicodeEncodeError as e:
        raise ValueError(
            f"Character {text[e.start]!r} at offset {e.start} cannot be sent as a single byte"
        ) from e


def build_get_info() -> bytes:
    """Build the "get device info" frame (MAC address and IMEI)."""
    return build_frame(GET_INFO)


def build_request_csr() -> bytes:
    """Build the frame asking the lock to generate a CSR."""
    return build_frame(REQUEST_CSR)


def build_forward_crt(certificate: str) -> bytes:
    """Build the frame carrying the issued device certificate."""
    return build_frame(FORWARD_CRT + RESERVED + encode_text(certificate))


def build_forward_key(slot: KeySlot, pem: str) -> bytes:
    """Build a frame carrying key material for one of the lock's key slots.

    Args:
        slot: Which slot the lock stores the PEM block in.
        pem: Private key or CA certificate text.
    """
    slot = KeySlot(slot)
    return build_frame(FORWARD_KEY + RESERVED + bytes([slot]) + encode_text(pem))
