"""Tests for CRC-16 calculation."""

from vtk_terminal.utils.crc import CRC16_TABLE, crc16, verify_crc16


def test_crc16_empty():
    """CRC of empty data is the initial register value."""
    assert crc16(b"") == 0xFFFF


def test_crc16_check_value():
    """Standard CCITT-FALSE check value for '123456789'."""
    result = crc16(b"123456789")
    assert result == 0x29B1, f"Expected 0x29B1, got 0x{result:04X}"


def test_crc16_table():
    """Table entries follow polynomial 0x1021."""
    assert len(CRC16_TABLE) == 256
    assert CRC16_TABLE[0] == 0x0000
    assert CRC16_TABLE[1] == 0x1021
    assert CRC16_TABLE[2] == 0x2042
    assert CRC16_TABLE[255] == 0x1EF0


def test_crc16_deterministic():
    """Same input should always produce same output."""
    data = b"\x1f\x00\x07\x96\xfb\x01\x03IDL"
    assert crc16(data) == crc16(data)
    assert crc16(data) == crc16(bytes(data))


def test_crc16_order_sensitive():
    """Swapping bytes changes the checksum."""
    assert crc16(b"\x01\x02") != crc16(b"\x02\x01")


def test_crc16_fits_16_bits():
    """Result always fits in two bytes."""
    for data in (b"\xff" * 100, bytes(range(256)), b"\x00"):
        assert 0 <= crc16(data) <= 0xFFFF


def test_verify_crc16():
    """verify_crc16 compares against the computed value."""
    assert verify_crc16(b"123456789", 0x29B1)
    assert not verify_crc16(b"123456789", 0x29B2)
