"""Shared helpers: checksums."""

from .crc import crc16, verify_crc16
