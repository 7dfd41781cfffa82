"""Tests for the polling control loop."""

import pytest

from vtk_terminal.controller import ControlLoop
from vtk_terminal.handshake import HandshakeStage
from vtk_terminal.protocol.tlv import TlvKey
from vtk_terminal.terminal import Terminal


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _loop(transport, clock, **kwargs):
    terminal = Terminal(transport)
    terminal.operation_num = 10
    return ControlLoop(terminal, clock=clock, sleep=clock.sleep, **kwargs)


def _names(transport):
    return [r.get_str(TlvKey.MSG_NAME) for r in transport.sent()]


def test_run_once_sleeps_poll_interval(transport):
    """Each cycle ends with the fixed sleep."""
    clock = FakeClock()
    loop = _loop(transport, clock, poll_interval_s=0.5)
    loop.run_once()
    assert clock.sleeps == [0.5]
    assert loop.cycles == 1
    assert transport.written == []


def test_keepalive_after_interval(transport):
    """One keepalive per elapsed interval, carrying the counter."""
    clock = FakeClock()
    loop = _loop(transport, clock, keepalive_interval_s=270, poll_interval_s=0)

    clock.now = 269.0
    loop.run_once()
    assert transport.written == []

    clock.now = 270.0
    loop.run_once()
    loop.run_once()
    assert _names(transport) == ["IDL"]
    assert transport.sent()[0].get_str(TlvKey.OPERATION_NUM) == "10"

    clock.now = 539.0
    loop.run_once()
    assert loop.keepalives_sent == 1

    clock.now = 541.0
    loop.run_once()
    assert loop.keepalives_sent == 2


def test_keepalive_once_after_long_stall(transport):
    """A long gap still produces a single keepalive on the next check."""
    clock = FakeClock()
    loop = _loop(transport, clock, keepalive_interval_s=270, poll_interval_s=0)
    clock.now = 10_000.0
    assert loop.check_keepalive() is True
    assert loop.check_keepalive() is False
    assert loop.keepalives_sent == 1


def test_payment_through_loop(transport, make_frame):
    """STA, VRP, FIN from the terminal produce VRP, FIN, IDL from the host."""
    transport.replies.extend([
        make_frame("STA", amount="150"),
        make_frame("VRP", amount="150"),
        make_frame("FIN", amount="150"),
    ])
    clock = FakeClock()
    loop = _loop(transport, clock, poll_interval_s=1.0)

    loop.run_once()
    assert loop.handshake.stage is HandshakeStage.STARTED
    loop.run_once()
    assert loop.handshake.stage is HandshakeStage.RESERVED
    loop.run_once()

    assert loop.handshake.stage is HandshakeStage.IDLE
    assert loop.completed_payments == [150]
    assert _names(transport) == ["VRP", "FIN", "IDL"]
    vrp, fin, _ = transport.sent()
    assert vrp.get_str(TlvKey.OPERATION_NUM) == "11"
    assert fin.get_str(TlvKey.OPERATION_NUM) == "11"
    assert fin.get_str(TlvKey.AMOUNT) == "150"


def test_keepalive_sent_mid_payment(transport, make_frame):
    """Keepalive runs regardless of handshake stage."""
    transport.replies.append(make_frame("STA", amount="150"))
    clock = FakeClock()
    loop = _loop(transport, clock, keepalive_interval_s=5, poll_interval_s=1.0)

    loop.run_once()
    clock.now = 5.0
    loop.run_once()

    assert _names(transport) == ["VRP", "IDL"]
    assert loop.handshake.stage is HandshakeStage.STARTED
    assert transport.sent()[1].get_str(TlvKey.OPERATION_NUM) == "11"


def test_bad_frame_does_not_stop_loop(transport, make_frame):
    """A corrupt frame is dropped and the next one is handled."""
    corrupt = bytearray(make_frame("STA", amount="150"))
    corrupt[-1] ^= 0xFF
    transport.replies.extend([bytes(corrupt), make_frame("STA", amount="20")])
    loop = _loop(transport, FakeClock())

    loop.run_once()
    loop.run_once()

    assert loop.handshake.pending_amount == 20


def test_run_forever_until_stopped(transport):
    """run_forever exits after stop()."""
    clock = FakeClock()
    loop = _loop(transport, clock)

    def sleep(seconds):
        if loop.cycles >= 3:
            loop.stop()

    loop._sleep = sleep
    loop.run_forever()
    assert loop.cycles == 3
    assert not loop.running


def test_run_forever_propagates_connection_error(transport):
    """Transport failures end the loop."""
    transport.replies.append(ConnectionError("unplugged"))
    loop = _loop(transport, FakeClock())
    with pytest.raises(ConnectionError):
        loop.run_forever()
    assert not loop.running
