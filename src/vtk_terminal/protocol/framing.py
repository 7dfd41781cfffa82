"""Frame builder and parser for the VTK serial link.

Frame layout::

    +--------+---------+---------+-----------------------+----------+
    | Start  | Length  | Magic   |       Records         | Checksum |
    | 1 byte | 2 bytes | 2 bytes |  variable length      |  2 bytes |
    +--------+---------+---------+-----------------------+----------+

- Start: 0x1F
- Length: big-endian count of (magic + records)
- Magic: 0x96 0xFB
- Checksum: CRC-16/CCITT-FALSE over start through records, big-endian
"""

from __future__ import annotations

import logging

from ..utils.crc import crc16, verify_crc16
from .tlv import RecordSet, TlvKey, decode_records, encode_records

logger = logging.getLogger(__name__)

START_MARKER = 0x1F
MAGIC = b"\x96\xFB"
HEADER_SIZE = 5  # start(1) + length(2) + magic(2)
CRC_SIZE = 2
MIN_FRAME_SIZE = 9
MAX_READ_SIZE = 512
MAX_RECORDS_SIZE = 0xFFFF - len(MAGIC)


class FrameError(ValueError):
    """An inbound buffer could not be accepted as a frame."""


class FrameTooShortError(FrameError):
    """Fewer bytes than the frame needs."""


class FrameFormatError(FrameError):
    """Start marker, magic, or length field is wrong."""


class ChecksumMismatchError(FrameError):
    """Trailing CRC does not match the frame contents."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"checksum mismatch: frame carries 0x{expected:04X}, "
            f"computed 0x{actual:04X}"
        )
        self.expected = expected
        self.actual = actual


def describe_frame(data: bytes) -> str:
    return data.hex(" ") if data else "(empty)"


def build_frame(message_name: str, records: RecordSet | None = None) -> bytes:
    """Build a complete frame for one message.

    Args:
        message_name: Three-letter message name, stored under ``MSG_NAME``
            (replacing any value already in ``records``).
        records: Additional records. The caller's set is not modified.

    Returns:
        Frame bytes ready to write to the transport.
    """
    body = records.copy() if records is not None else RecordSet()
    body.set_str(TlvKey.MSG_NAME, message_name)
    payload = encode_records(body)
    if len(payload) > MAX_RECORDS_SIZE:
        raise ValueError(f"Record payload too large: {len(payload)} bytes")

    length = (len(MAGIC) + len(payload)).to_bytes(2, "big")
    frame = bytes([START_MARKER]) + length + MAGIC + payload
    return frame + crc16(frame).to_bytes(2, "big")


def parse_frame(data: bytes, verify_checksum: bool = True) -> RecordSet:
    """Parse an inbound buffer into a record set.

    The buffer may be longer than the frame (a raw transport read); bytes
    after the checksum are ignored.

    Args:
        data: Raw bytes, starting at the start marker.
        verify_checksum: When False, reproduce the permissive behaviour of
            deployed hosts: skip the 5 header bytes and decode everything
            after them, trailing CRC included, with no validation.

    Returns:
        The decoded :class:`RecordSet`.

    Raises:
        FrameTooShortError: Buffer shorter than the minimum frame, or than
            the length the header declares.
        FrameFormatError: Wrong start marker, magic, or length field.
        ChecksumMismatchError: CRC does not match.
    """
    if len(data) < MIN_FRAME_SIZE:
        raise FrameTooShortError(
            f"frame too short: {len(data)} bytes, need at least {MIN_FRAME_SIZE}"
        )

    if not verify_checksum:
        return decode_records(data[HEADER_SIZE:])

    if data[0] != START_MARKER:
        raise FrameFormatError(f"bad start marker 0x{data[0]:02X}")
    if data[3:5] != MAGIC:
        raise FrameFormatError(f"bad magic {data[3:5].hex(' ')}")

    declared = int.from_bytes(data[1:3], "big")
    if declared < len(MAGIC):
        raise FrameFormatError(f"length field {declared} smaller than magic")

    crc_offset = 3 + declared
    if len(data) < crc_offset + CRC_SIZE:
        raise FrameTooShortError(
            f"frame declares {declared} bytes but buffer holds {len(data)}"
        )

    expected = int.from_bytes(data[crc_offset : crc_offset + CRC_SIZE], "big")
    if not verify_crc16(data[:crc_offset], expected):
        raise ChecksumMismatchError(expected, crc16(data[:crc_offset]))

    trailing = len(data) - crc_offset - CRC_SIZE
    if trailing:
        logger.debug("Ignoring %d bytes after frame", trailing)

    return decode_records(data[HEADER_SIZE:crc_offset])
