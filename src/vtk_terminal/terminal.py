"""Terminal session: bootstrap, operation counter, and message exchange."""

from __future__ import annotations

import logging

from .protocol.commands import (
    MessageName,
    build_disable,
    build_finalize,
    build_idle,
    build_keepalive,
    build_message,
    build_reservation,
    build_show_qr,
)
from .protocol.framing import MAX_READ_SIZE, FrameError, parse_frame
from .protocol.parser import FieldStatus, parse_operation_number
from .protocol.tlv import RecordSet
from .transport.serial_connection import READ_TIMEOUT_MS, Transport

logger = logging.getLogger(__name__)


class TerminalError(RuntimeError):
    """The terminal did not complete session setup."""


class Terminal:
    """One session with a VTK terminal over a byte transport.

    The terminal assigns the operation counter during :meth:`bootstrap`;
    the host increments it before every reservation and echoes it in
    finalize and keepalive messages.
    """

    def __init__(
        self,
        transport: Transport,
        verify_checksum: bool = True,
        max_read_size: int = MAX_READ_SIZE,
        read_timeout_ms: int = READ_TIMEOUT_MS,
    ) -> None:
        self._transport = transport
        self.verify_checksum = verify_checksum
        self.max_read_size = max_read_size
        self.read_timeout_ms = read_timeout_ms
        self.operation_num = 0

    def bootstrap(self) -> int:
        """Announce the host with an IDL and seed the operation counter.

        Returns:
            The operation number reported by the terminal (0 if the reply
            carried none or an unreadable one).

        Raises:
            TerminalError: If the terminal did not answer with a frame.
        """
        self._transport.write(build_idle())
        raw = self._transport.read(self.max_read_size, self.read_timeout_ms)
        if raw is None:
            raise TerminalError("No reply from terminal during bootstrap")
        try:
            reply = parse_frame(raw, verify_checksum=self.verify_checksum)
        except FrameError as e:
            raise TerminalError(f"Bad bootstrap reply: {e}") from e

        field = parse_operation_number(reply)
        if field.ok:
            self.operation_num = field.value
        elif field.status is FieldStatus.ABSENT:
            logger.warning("Bootstrap reply has no operation number; starting at 0")
            self.operation_num = 0
        else:
            logger.warning(
                "Bootstrap reply has unreadable operation number %r; starting at 0",
                field.raw,
            )
            self.operation_num = 0

        logger.info("Terminal ready, operation number %d", self.operation_num)
        return self.operation_num

    def send(self, name: MessageName | str, records: RecordSet | None = None) -> None:
        self._transport.write(build_message(name, records))

    def receive(self) -> RecordSet | None:
        """Read and decode one inbound message.

        Returns:
            The record set, or None on timeout or a rejected frame.
        """
        raw = self._transport.read(self.max_read_size, self.read_timeout_ms)
        if raw is None:
            return None
        try:
            records = parse_frame(raw, verify_checksum=self.verify_checksum)
        except FrameError as e:
            logger.warning("Dropped inbound frame: %s", e)
            return None
        logger.debug("Received %s", records)
        return records

    def send_reservation(self, amount: int) -> None:
        """Send VRP for ``amount`` with the next operation number."""
        self.operation_num += 1
        logger.info("VRP amount=%d op=%d", amount, self.operation_num)
        self._transport.write(build_reservation(amount, self.operation_num))

    def send_finalize(self, amount: int) -> None:
        """Send FIN for ``amount`` with the current operation number."""
        logger.info("FIN amount=%d op=%d", amount, self.operation_num)
        self._transport.write(build_finalize(amount, self.operation_num))

    def send_keepalive(self) -> None:
        logger.info("Keepalive op=%d", self.operation_num)
        self._transport.write(build_keepalive(self.operation_num))

    def idle(self, extra: RecordSet | None = None) -> None:
        self._transport.write(build_idle(extra=extra))

    def show_qr(self, data: str) -> None:
        """Display a QR code on the terminal's idle screen."""
        self._transport.write(build_show_qr(data))

    def disable(self) -> RecordSet | None:
        """Send DIS and wait for the terminal's reply."""
        self._transport.write(build_disable())
        return self.receive()
