"""Field extraction and classification of inbound messages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .commands import MessageName
from .tlv import RecordSet, TlvKey


class FieldStatus(Enum):
    OK = "ok"
    ABSENT = "absent"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class NumericField:
    """Outcome of reading an unsigned decimal field."""

    status: FieldStatus
    value: int | None = None
    raw: bytes | None = None

    @property
    def ok(self) -> bool:
        return self.status is FieldStatus.OK

    def __repr__(self) -> str:
        if self.ok:
            return f"NumericField({self.value})"
        return f"NumericField({self.status.value}, raw={self.raw!r})"


class EventKind(Enum):
    START = "start"
    RESERVE_CONFIRM = "reserve_confirm"
    FINALIZE_CONFIRM = "finalize_confirm"
    OTHER = "other"


_EVENT_KINDS = {
    MessageName.START.value: EventKind.START,
    MessageName.RESERVATION.value: EventKind.RESERVE_CONFIRM,
    MessageName.FINALIZE.value: EventKind.FINALIZE_CONFIRM,
}


@dataclass(frozen=True)
class InboundEvent:
    """An inbound record set viewed as a handshake event."""

    kind: EventKind
    name: str | None
    amount: NumericField


def parse_unsigned(records: RecordSet, key: TlvKey) -> NumericField:
    """Read ``key`` as an unsigned decimal number. Never raises."""
    raw = records.get_bin(key)
    if raw is None:
        return NumericField(FieldStatus.ABSENT)
    # bytes.isdigit() is ASCII-only, so no signs, spaces or unicode digits
    if not raw or not raw.isdigit():
        return NumericField(FieldStatus.MALFORMED, raw=raw)
    return NumericField(FieldStatus.OK, value=int(raw), raw=raw)


def parse_amount(records: RecordSet) -> NumericField:
    return parse_unsigned(records, TlvKey.AMOUNT)


def parse_operation_number(records: RecordSet) -> NumericField:
    return parse_unsigned(records, TlvKey.OPERATION_NUM)


def message_name(records: RecordSet) -> str | None:
    """Return the message name, or None if absent or not ASCII."""
    return records.get_str(TlvKey.MSG_NAME)


def classify(records: RecordSet) -> InboundEvent:
    """Classify an inbound record set by its message name."""
    name = message_name(records)
    kind = _EVENT_KINDS.get(name, EventKind.OTHER)
    return InboundEvent(kind=kind, name=name, amount=parse_amount(records))
