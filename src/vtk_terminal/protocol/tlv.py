"""Key/length/value record codec.

Record layout::

    +---------+---------+------------------+
    | Key     | Length  | Value            |
    | 1 byte  | 1 byte  | ``Length`` bytes |
    +---------+---------+------------------+

A message body is a plain concatenation of records. Decoding is
forgiving: unknown keys are skipped, a repeated key keeps its
first value, and a truncated tail (fewer than 2 bytes left, or a length
that runs past the end) simply ends the decode.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Iterator

MAX_VALUE_LENGTH = 255


class TlvKey(IntEnum):
    """Record identifiers understood by the terminal."""

    MSG_NAME = 0x01
    OPERATION_NUM = 0x03
    AMOUNT = 0x04  # minor currency units, decimal text
    KEEPALIVE_INTERVAL = 0x05  # seconds
    OPERATION_TIMEOUT = 0x06  # seconds
    EVENT_NAME = 0x07
    EVENT_NUM = 0x08
    PRODUCT_ID = 0x09
    QR_CODE_DATA = 0x0A
    TCP_IP_DESTINATION = 0x0B
    OUTGOING_BYTE_COUNTER = 0x0C
    SIMPLE_DATA_BLOCK = 0x0D
    CONFIRMABLE_DATA_BLOCK = 0x0E
    PRODUCT_NAME = 0x0F
    POS_MANAGEMENT_DATA = 0x10
    LOCAL_TIME = 0x11
    SYS_INFO = 0x12
    BANKING_RECEIPT = 0x13
    DISPLAY_TIME_MS = 0x14


_KNOWN_KEYS = {key.value: key for key in TlvKey}


class RecordSet:
    """Mapping of :class:`TlvKey` to raw value bytes.

    Values longer than 255 bytes cannot be represented on the wire and are
    rejected when set.
    """

    def __init__(self, records: dict[TlvKey, bytes] | None = None) -> None:
        self._data: dict[TlvKey, bytes] = {}
        for key, value in (records or {}).items():
            self.set_bin(key, value)

    def get_bin(self, key: TlvKey) -> bytes | None:
        return self._data.get(key)

    def get_str(self, key: TlvKey) -> str | None:
        """Return the value decoded as UTF-8, or None if absent or not text."""
        value = self._data.get(key)
        if value is None:
            return None
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return None

    def set_bin(self, key: TlvKey, value: bytes) -> None:
        if len(value) > MAX_VALUE_LENGTH:
            raise ValueError(
                f"Value for {TlvKey(key).name} must be at most "
                f"{MAX_VALUE_LENGTH} bytes, got {len(value)}"
            )
        self._data[TlvKey(key)] = bytes(value)

    def set_str(self, key: TlvKey, value: str) -> None:
        self.set_bin(key, value.encode("utf-8"))

    def setdefault_bin(self, key: TlvKey, value: bytes) -> bool:
        """Store ``value`` only if ``key`` is not present yet.

        Returns:
            True if the value was stored.
        """
        if key in self._data:
            return False
        self.set_bin(key, value)
        return True

    def copy(self) -> RecordSet:
        return RecordSet(dict(self._data))

    def items(self):
        return self._data.items()

    def to_bytes(self) -> bytes:
        return encode_records(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> RecordSet:
        return decode_records(data)

    def to_dict(self) -> dict[str, str]:
        """Readable view for logs and tool output; non-text values as hex."""
        result = {}
        for key, value in sorted(self._data.items()):
            text = self.get_str(key)
            result[key.name] = text if text is not None else value.hex(" ")
        return result

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[TlvKey]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecordSet):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"RecordSet({self.to_dict()})"


def encode_records(records: RecordSet) -> bytes:
    """Serialize a record set, one ``key | length | value`` per entry.

    Records are emitted in ascending key order so output is stable.
    """
    out = bytearray()
    for key, value in sorted(records.items()):
        out.append(int(key))
        out.append(len(value))
        out += value
    return bytes(out)


def decode_records(data: bytes) -> RecordSet:
    """Parse a record stream. Never raises; stops early on a short tail."""
    records = RecordSet()
    offset = 0
    while len(data) - offset >= 2:
        key_byte = data[offset]
        length = data[offset + 1]
        end = offset + 2 + length
        if end > len(data):
            break
        key = _KNOWN_KEYS.get(key_byte)
        if key is not None:
            records.setdefault_bin(key, data[offset + 2 : end])
        offset = end
    return records
