"""CRC-16/CCITT-FALSE used by the VTK frame trailer.

Polynomial 0x1021, initial value 0xFFFF, no reflection, no final XOR.
The lookup table is built once at import time.
"""

from __future__ import annotations

POLYNOMIAL = 0x1021
INITIAL_VALUE = 0xFFFF


def _build_table(poly: int = POLYNOMIAL) -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ poly) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
        table.append(crc)
    return tuple(table)


CRC16_TABLE = _build_table()


def crc16(data: bytes) -> int:
    """Compute the CRC-16 of ``data``.

    Args:
        data: Bytes to checksum. An empty buffer yields ``0xFFFF``.

    Returns:
        16-bit checksum as an ``int``.
    """
    crc = INITIAL_VALUE
    for byte in data:
        index = ((crc >> 8) ^ byte) & 0xFF
        crc = ((crc << 8) ^ CRC16_TABLE[index]) & 0xFFFF
    return crc


def verify_crc16(data: bytes, expected: int) -> bool:
    """Return True if ``crc16(data)`` equals ``expected``."""
    return crc16(data) == expected
