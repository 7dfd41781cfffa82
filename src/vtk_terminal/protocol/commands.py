"""Message names and high-level message builders.

Every message carries its name in the ``MSG_NAME`` record. Numeric
fields (amount, operation number) travel as decimal ASCII text.
"""

from __future__ import annotations

from enum import Enum

from .framing import build_frame
from .tlv import RecordSet, TlvKey


class MessageName(str, Enum):
    """Message names exchanged with the terminal."""

    IDLE = "IDL"
    DISABLE = "DIS"
    START = "STA"
    RESERVATION = "VRP"
    FINALIZE = "FIN"


def _unsigned_text(name: str, value: int) -> str:
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return str(value)


def build_message(name: MessageName | str, records: RecordSet | None = None) -> bytes:
    """Build a frame for ``name`` with optional extra records."""
    return build_frame(MessageName(name).value, records)


def build_idle(
    operation_num: int | None = None,
    extra: RecordSet | None = None,
) -> bytes:
    """Build an IDL (idle) message.

    Args:
        operation_num: When given, included as ``OPERATION_NUM``.
        extra: Additional records, e.g. a QR code to display.
    """
    records = extra.copy() if extra is not None else RecordSet()
    if operation_num is not None:
        records.set_str(
            TlvKey.OPERATION_NUM, _unsigned_text("Operation number", operation_num)
        )
    return build_message(MessageName.IDLE, records)


def build_keepalive(operation_num: int) -> bytes:
    """Build the periodic liveness IDL carrying the operation counter."""
    return build_idle(operation_num)


def _build_payment(name: MessageName, amount: int, operation_num: int) -> bytes:
    records = RecordSet()
    records.set_str(TlvKey.AMOUNT, _unsigned_text("Amount", amount))
    records.set_str(
        TlvKey.OPERATION_NUM, _unsigned_text("Operation number", operation_num)
    )
    return build_message(name, records)


def build_reservation(amount: int, operation_num: int) -> bytes:
    """Build a VRP message reserving ``amount`` minor units."""
    return _build_payment(MessageName.RESERVATION, amount, operation_num)


def build_finalize(amount: int, operation_num: int) -> bytes:
    """Build a FIN message finalizing ``amount`` minor units."""
    return _build_payment(MessageName.FINALIZE, amount, operation_num)


def build_disable() -> bytes:
    """Build a DIS message taking the terminal out of service."""
    return build_message(MessageName.DISABLE)


def build_show_qr(data: str, extra: RecordSet | None = None) -> bytes:
    """Build an IDL message that shows a QR code on the terminal screen.

    Args:
        data: QR payload text, at most 255 bytes once encoded.
        extra: Additional records sent alongside.
    """
    records = extra.copy() if extra is not None else RecordSet()
    records.set_str(TlvKey.QR_CODE_DATA, data)
    return build_idle(extra=records)
