"""Payment handshake state machine.

The terminal drives a payment with three messages, each answered by the
host::

    terminal  STA amount=N          ->  host  VRP amount=N op=k+1
    terminal  VRP amount=N          ->  host  FIN amount=N op=k+1
    terminal  FIN amount=N          ->  host  IDL

Stages advance IDLE -> STARTED -> RESERVED -> FINALIZED and return to
IDLE once the closing IDL is sent. Only one payment is in flight at a
time.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Protocol

from .protocol.parser import EventKind, InboundEvent, classify
from .protocol.tlv import RecordSet

logger = logging.getLogger(__name__)


class HandshakeStage(Enum):
    IDLE = "idle"
    STARTED = "started"
    RESERVED = "reserved"
    FINALIZED = "finalized"


class HandshakeSender(Protocol):
    """Outbound side of the handshake, implemented by ``Terminal``."""

    def send_reservation(self, amount: int) -> None: ...

    def send_finalize(self, amount: int) -> None: ...

    def idle(self, extra: RecordSet | None = None) -> None: ...


class PaymentHandshake:
    """Tracks one payment and emits the host side of the exchange.

    ``on_complete`` callbacks receive the credited amount (minor units)
    after the closing IDL has been sent.
    """

    def __init__(self, sender: HandshakeSender) -> None:
        self._sender = sender
        self.stage = HandshakeStage.IDLE
        self.pending_amount: int | None = None
        self.on_complete: list[Callable[[int], None]] = []

    def reset(self) -> None:
        """Abandon any payment in progress."""
        if self.stage is not HandshakeStage.IDLE:
            logger.info(
                "Session reset from %s (amount %s)",
                self.stage.value,
                self.pending_amount,
            )
        self.stage = HandshakeStage.IDLE
        self.pending_amount = None

    def snapshot(self) -> dict[str, Any]:
        return {"stage": self.stage.value, "pending_amount": self.pending_amount}

    def handle(self, records: RecordSet) -> HandshakeStage:
        """Feed one inbound record set through the state machine.

        Checks run in stage order and build on each other, so a later check
        sees a transition made by an earlier one within the same call.

        Returns:
            The stage after processing (IDLE once a payment completes).
        """
        event = classify(records)

        if event.kind is EventKind.START:
            self._on_start(event)

        if self.stage is HandshakeStage.STARTED and event.kind is EventKind.RESERVE_CONFIRM:
            if self._amount_matches(event):
                self.stage = HandshakeStage.RESERVED
                logger.info("Reservation confirmed for %d", self.pending_amount)
                self._sender.send_finalize(self.pending_amount)

        if self.stage is HandshakeStage.RESERVED and event.kind is EventKind.FINALIZE_CONFIRM:
            if self._amount_matches(event):
                self.stage = HandshakeStage.FINALIZED
                logger.info("Payment finalized for %d", self.pending_amount)

        if self.stage is HandshakeStage.FINALIZED:
            self._complete()

        return self.stage

    def _on_start(self, event: InboundEvent) -> None:
        if not event.amount.ok:
            logger.warning(
                "Ignoring STA with %s amount (%r)",
                event.amount.status.value,
                event.amount.raw,
            )
            return
        if self.stage is not HandshakeStage.IDLE:
            logger.warning(
                "Ignoring STA for %d while %s with amount %s",
                event.amount.value,
                self.stage.value,
                self.pending_amount,
            )
            return

        self.stage = HandshakeStage.STARTED
        self.pending_amount = event.amount.value
        logger.info("Payment started for %d", self.pending_amount)
        self._sender.send_reservation(self.pending_amount)

    def _amount_matches(self, event: InboundEvent) -> bool:
        if not event.amount.ok:
            logger.warning(
                "Ignoring %s with %s amount (%r)",
                event.name,
                event.amount.status.value,
                event.amount.raw,
            )
            return False
        if event.amount.value != self.pending_amount:
            logger.warning(
                "Ignoring %s for %d, expected %d",
                event.name,
                event.amount.value,
                self.pending_amount,
            )
            return False
        return True

    def _complete(self) -> None:
        amount = self.pending_amount
        self._sender.idle()
        self.reset()
        logger.info("Credited %d", amount)
        for callback in self.on_complete:
            callback(amount)
