"""Transport layer: byte-stream access to the terminal."""

from .serial_connection import SerialConnection, Transport
