"""Tests for CRC-16/CCITT-FALSE calculation."""

from lock_provision_mcp.utils.crc import crc16


def test_crc16_empty():
    """CRC of empty data is the initial value."""
    assert crc16(b"") == 0xFFFF


def test_crc16_check_value():
    """Standard check value for the CCITT-FALSE variant."""
    result = crc16(b"123456789")
    assert result == 0x29B1, f"Expected 0x29B1, got 0x{result:04X}"


def test_crc16_get_info_body():
    """CRC over the length header, opcode and padding of the get-info frame."""
    body = bytes([0x00, 0x3E, 0x00, 0x01, 0x40, 0x00]) + bytes(54)
    assert crc16(body) == 0xC07C


def test_crc16_deterministic():
    """Same input should always produce same output."""
    data = b"\x00\x01\x40\x01"
    assert crc16(data) == crc16(data)


def test_crc16_order_sensitive():
    """Swapping two bytes changes the checksum."""
    assert crc16(b"\x01\x02") == 0x0E7C
    assert crc16(b"\x02\x01") == 0x6B4C


def test_crc16_accepts_bytearray():
    assert crc16(bytearray(b"123456789")) == 0x29B1
