"""Frame builder and response reassembly for the lock's 64-byte HID reports.

Frame layout::

    +---------+---------+------------------+-----------------+----------+
    | Marker  | Length  | Command          | Zero padding    | Checksum |
    | 2 bytes | 2 bytes | variable length  | to 64-byte edge | 2 bytes  |
    +---------+---------+------------------+-----------------+----------+

- Marker: 0x5A 0x5A
- Length: big-endian, total frame length minus the 2 marker bytes
- Checksum: CRC-16/CCITT-FALSE over length + command + padding, big-endian
- The whole frame is always a multiple of 64 bytes and is written to the
  device one report at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import FrameTooLarge
from ..utils.crc import crc16

MARKER = b"\x5A\x5A"
HID_REPORT_SIZE = 64
HEADER_SIZE = 4  # marker + length
CHECKSUM_SIZE = 2
FRAME_OVERHEAD = HEADER_SIZE + CHECKSUM_SIZE
MAX_DECLARED_LENGTH = 0xFFFF


def block_count(command_length: int) -> int:
    """Number of 64-byte reports needed to frame a command of this length."""
    return -(-(command_length + FRAME_OVERHEAD) // HID_REPORT_SIZE)


def build_frame(command: bytes) -> bytes:
    """Wrap a raw command in marker, length, zero padding and CRC.

    Args:
        command: Opcode bytes followed by any argument payload.

    Returns:
        The wire-ready frame, a multiple of 64 bytes long.

    Raises:
        FrameTooLarge: If the declared length would not fit in 16 bits.
    """
    command = bytes(command)
    total = block_count(len(command)) * HID_REPORT_SIZE
    declared = total - len(MARKER)
    if declared > MAX_DECLARED_LENGTH:
        raise FrameTooLarge(
            f"Command of {len(command)} bytes needs a declared length of "
            f"{declared}, maximum is {MAX_DECLARED_LENGTH}"
        )

    padding = b"\x00" * (total - FRAME_OVERHEAD - len(command))
    body = declared.to_bytes(2, "big") + command + padding
    checksum = crc16(body).to_bytes(2, "big")
    return MARKER + body + checksum


def parse_header(data: bytes) -> int | None:
    """Return the declared length from the start of a response.

    Returns ``None`` when fewer than 4 bytes are available or the data does
    not start with the marker.
    """
    if len(data) < HEADER_SIZE or data[:2] != MARKER:
        return None
    return int.from_bytes(data[2:4], "big")


def verify_frame(frame: bytes) -> bool:
    """Check the trailing CRC of a frame built by :func:`build_frame`."""
    if len(frame) < FRAME_OVERHEAD or frame[:2] != MARKER:
        return False
    expected = int.from_bytes(frame[-CHECKSUM_SIZE:], "big")
    return crc16(frame[2:-CHECKSUM_SIZE]) == expected


def split_reports(frame: bytes) -> list[bytes]:
    """Slice a frame into consecutive 64-byte reports (last may be shorter)."""
    return [
        frame[offset : offset + HID_REPORT_SIZE]
        for offset in range(0, len(frame), HID_REPORT_SIZE)
    ]


@dataclass
class ResponseBuffer:
    """Accumulates inbound chunks until the declared response length arrives.

    The header is parsed from the accumulated bytes, so a response split
    into arbitrary chunks completes at the same point as one delivered whole.
    A response whose first 4 bytes carry no marker completes immediately.
    """

    expected_length: int = 0
    received: bytearray = field(default_factory=bytearray)

    def feed(self, chunk: bytes) -> bytes | None:
        """Append a chunk; return the full response once complete, else ``None``."""
        self.received += chunk
        if len(self.received) < HEADER_SIZE:
            return None
        if not self.expected_length:
            self.expected_length = parse_header(self.received) or 0
        if len(self.received) - 2 >= self.expected_length:
            response = bytes(self.received)
            self.reset()
            return response
        return None

    def reset(self) -> None:
        self.expected_length = 0
        self.received = bytearray()

    def __repr__(self) -> str:
        return (
            f"ResponseBuffer(expected_length={self.expected_length}, "
            f"received={len(self.received)} bytes)"
        )
