"""Polling control loop.

Each cycle runs, in order: the keepalive check, one bounded receive, the
handshake, and a fixed sleep. Everything happens on the calling thread.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from .handshake import PaymentHandshake
from .terminal import Terminal

logger = logging.getLogger(__name__)

KEEPALIVE_INTERVAL_S = 270.0
POLL_INTERVAL_S = 1.0


class ControlLoop:
    """Drives a :class:`Terminal` and its :class:`PaymentHandshake`."""

    def __init__(
        self,
        terminal: Terminal,
        handshake: PaymentHandshake | None = None,
        keepalive_interval_s: float = KEEPALIVE_INTERVAL_S,
        poll_interval_s: float = POLL_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.terminal = terminal
        self.handshake = handshake or PaymentHandshake(terminal)
        self.keepalive_interval_s = keepalive_interval_s
        self.poll_interval_s = poll_interval_s
        self._clock = clock
        self._sleep = sleep
        self._last_keepalive = clock()
        self._running = False
        self.cycles = 0
        self.keepalives_sent = 0
        self.completed_payments: list[int] = []
        self.handshake.on_complete.append(self.completed_payments.append)

    @property
    def running(self) -> bool:
        return self._running

    def check_keepalive(self) -> bool:
        """Send a keepalive if the interval has elapsed.

        Returns:
            True if a keepalive was sent.
        """
        now = self._clock()
        if now - self._last_keepalive < self.keepalive_interval_s:
            return False
        self.terminal.send_keepalive()
        self._last_keepalive = now
        self.keepalives_sent += 1
        return True

    def run_once(self) -> None:
        """Run a single loop iteration."""
        self.check_keepalive()

        records = self.terminal.receive()
        if records is not None:
            logger.info("Message: %s", records.to_dict())
            self.handshake.handle(records)

        self.cycles += 1
        self._sleep(self.poll_interval_s)

    def run_forever(self) -> None:
        """Loop until :meth:`stop` is called or the process is interrupted.

        Transport failures (``ConnectionError``) propagate to the caller.
        That includes a single failed read: the loop does not treat it as
        an empty cycle, so one transient serial error ends the session.
        """
        self._running = True
        logger.info(
            "Control loop started (keepalive %.0fs, poll %.1fs)",
            self.keepalive_interval_s,
            self.poll_interval_s,
        )
        try:
            while self._running:
                self.run_once()
        finally:
            self._running = False
            logger.info("Control loop stopped after %d cycles", self.cycles)

    def stop(self) -> None:
        self._running = False
