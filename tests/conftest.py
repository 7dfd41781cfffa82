"""Shared fixtures: an in-memory transport and a frame factory."""

from __future__ import annotations

import pytest

from vtk_terminal.protocol.framing import build_frame, parse_frame
from vtk_terminal.protocol.tlv import RecordSet, TlvKey


class FakeTransport:
    """Transport double: records writes, replays queued reads.

    A queued exception is raised from ``read`` instead of returned.
    """

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.written: list[bytes] = []

    def write(self, data: bytes) -> int:
        self.written.append(bytes(data))
        return len(data)

    def read(self, max_bytes: int = 512, timeout_ms=None):
        if not self.replies:
            return None
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply[:max_bytes] if reply is not None else None

    def sent(self) -> list[RecordSet]:
        return [parse_frame(w) for w in self.written]


def _make_frame(name: str, **fields: str) -> bytes:
    records = RecordSet()
    for key, value in fields.items():
        records.set_str(TlvKey[key.upper()], value)
    return build_frame(name, records)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_frame():
    """Build a frame from keyword fields, e.g. make_frame("STA", amount="150")."""
    return _make_frame
