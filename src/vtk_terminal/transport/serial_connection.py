"""Serial connection to the VTK terminal.

The terminal is attached through a USB-RS232 adapter and talks 115200 8N1
with no flow control. Reads block for at most the configured timeout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import serial

from ..protocol.framing import MAX_READ_SIZE, describe_frame

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUD_RATE = 115200
READ_TIMEOUT_MS = 2000
# A gap this long after the first byte ends the current read.
INTER_BYTE_TIMEOUT_S = 0.05


class Transport(Protocol):
    """Byte-stream interface the terminal session depends on."""

    def write(self, data: bytes) -> int: ...

    def read(
        self, max_bytes: int = MAX_READ_SIZE, timeout_ms: int | None = None
    ) -> bytes | None: ...


@dataclass
class PortInfo:
    """Settings of the opened serial port."""

    port: str = DEFAULT_PORT
    baud_rate: int = DEFAULT_BAUD_RATE
    read_timeout_ms: int = READ_TIMEOUT_MS


class SerialConnection:
    """Manages the serial link to the terminal.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.open()
        conn.write(frame_bytes)
        response = conn.read()
        conn.close()
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baud_rate: int = DEFAULT_BAUD_RATE,
        read_timeout_ms: int = READ_TIMEOUT_MS,
    ) -> None:
        self._info = PortInfo(port, baud_rate, read_timeout_ms)
        self._serial: serial.Serial | None = None

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def port_info(self) -> PortInfo:
        return self._info

    def open(self) -> PortInfo:
        """Open the serial port.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if self.connected:
            return self._info

        try:
            self._serial = serial.Serial(
                self._info.port,
                self._info.baud_rate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self._info.read_timeout_ms / 1000.0,
                inter_byte_timeout=INTER_BYTE_TIMEOUT_S,
                write_timeout=self._info.read_timeout_ms / 1000.0,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
            )
        except (serial.SerialException, ValueError) as e:
            raise ConnectionError(
                f"Could not open {self._info.port} @ {self._info.baud_rate} bps. "
                f"Ensure the terminal is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

        logger.info("Opened %s @ %d bps", self._info.port, self._info.baud_rate)
        return self._info

    def close(self) -> None:
        """Close the serial port."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing port: %s", e)
        finally:
            self._serial = None
            logger.info("Disconnected")

    def write(self, data: bytes) -> int:
        """Write a frame to the terminal.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected or the write fails.
        """
        if not self.connected:
            raise ConnectionError("Not connected to terminal")

        logger.debug("TX %s", describe_frame(data))
        try:
            written = self._serial.write(data)
            self._serial.flush()
        except serial.SerialException as e:
            raise ConnectionError(f"Write to {self._info.port} failed: {e}") from e
        return written if written is not None else len(data)

    def read(
        self,
        max_bytes: int = MAX_READ_SIZE,
        timeout_ms: int | None = None,
    ) -> bytes | None:
        """Read one burst of bytes from the terminal.

        Args:
            max_bytes: Upper bound on bytes returned.
            timeout_ms: Read timeout; defaults to the port setting.

        Returns:
            The bytes read, or None if the read timed out with no data.

        Raises:
            ConnectionError: If not connected or the port failed
                (e.g. the adapter was unplugged).
        """
        if not self.connected:
            raise ConnectionError("Not connected to terminal")

        default_timeout = self._info.read_timeout_ms / 1000.0
        timeout = default_timeout if timeout_ms is None else timeout_ms / 1000.0
        # Setting pyserial's timeout reconfigures the tty and can fail too.
        changed = timeout != default_timeout

        try:
            if changed:
                self._serial.timeout = timeout
            data = self._serial.read(max_bytes)
        except serial.SerialException as e:
            raise ConnectionError(f"Read from {self._info.port} failed: {e}") from e
        finally:
            if changed:
                try:
                    self._serial.timeout = default_timeout
                except serial.SerialException as e:
                    logger.warning("Could not restore read timeout: %s", e)

        if not data:
            return None
        logger.debug("RX %s", describe_frame(data))
        return data
