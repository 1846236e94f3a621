"""CRC-16/CCITT-FALSE checksum used as the frame trailer.

Parameters: polynomial 0x1021, initial value 0xFFFF, no bit reflection,
no final XOR. ``crc16(b"123456789") == 0x29B1``.
"""

from __future__ import annotations

import crcmod

CRC16_POLYNOMIAL = 0x11021  # crcmod expects the implicit top bit
CRC16_INITIAL = 0xFFFF

_crc16_ccitt = crcmod.mkCrcFun(
    poly=CRC16_POLYNOMIAL,
    initCrc=CRC16_INITIAL,
    rev=False,
    xorOut=0x0000,
)


def crc16(data: bytes) -> int:
    """Compute the CRC-16/CCITT-FALSE checksum of ``data``."""
    return _crc16_ccitt(bytes(data))
