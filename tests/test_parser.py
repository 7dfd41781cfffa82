"""Tests for field extraction and event classification."""

import pytest

from vtk_terminal.protocol.parser import (
    EventKind,
    FieldStatus,
    classify,
    message_name,
    parse_amount,
    parse_operation_number,
    parse_unsigned,
)
from vtk_terminal.protocol.tlv import RecordSet, TlvKey


def _records(**fields: bytes) -> RecordSet:
    return RecordSet({TlvKey[k.upper()]: v for k, v in fields.items()})


def test_parse_unsigned_ok():
    """Decimal text parses to an int."""
    field = parse_amount(_records(amount=b"150"))
    assert field.ok
    assert field.status is FieldStatus.OK
    assert field.value == 150


def test_parse_unsigned_absent():
    """A missing key is reported as absent, not an error."""
    field = parse_operation_number(_records(msg_name=b"IDL"))
    assert not field.ok
    assert field.status is FieldStatus.ABSENT
    assert field.value is None


@pytest.mark.parametrize("raw", [b"", b"12a", b"-5", b" 1", b"1.5", b"\xd9\xa1"])
def test_parse_unsigned_malformed(raw):
    """Anything but ASCII digits is malformed."""
    field = parse_unsigned(_records(amount=raw), TlvKey.AMOUNT)
    assert field.status is FieldStatus.MALFORMED
    assert field.raw == raw
    assert field.value is None


def test_parse_unsigned_leading_zeros():
    """Leading zeros are accepted."""
    assert parse_amount(_records(amount=b"0099")).value == 99


def test_message_name():
    """Names are read as ASCII; undecodable bytes give None."""
    assert message_name(_records(msg_name=b"STA")) == "STA"
    assert message_name(_records(msg_name=b"\xff")) is None
    assert message_name(RecordSet()) is None


def test_classify_events():
    """STA, VRP and FIN map to handshake events."""
    assert classify(_records(msg_name=b"STA")).kind is EventKind.START
    assert classify(_records(msg_name=b"VRP")).kind is EventKind.RESERVE_CONFIRM
    assert classify(_records(msg_name=b"FIN")).kind is EventKind.FINALIZE_CONFIRM
    assert classify(_records(msg_name=b"IDL")).kind is EventKind.OTHER
    assert classify(RecordSet()).kind is EventKind.OTHER


def test_classify_carries_amount():
    """The amount field is attached to the event."""
    event = classify(_records(msg_name=b"STA", amount=b"150"))
    assert event.name == "STA"
    assert event.amount.value == 150

    missing = classify(_records(msg_name=b"STA"))
    assert missing.amount.status is FieldStatus.ABSENT
