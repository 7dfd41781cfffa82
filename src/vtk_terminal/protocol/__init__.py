"""Protocol layer: record codec, message framing, builders, and parsing."""

from .tlv import RecordSet, TlvKey, decode_records, encode_records
from .framing import (
    ChecksumMismatchError,
    FrameError,
    FrameFormatError,
    FrameTooShortError,
    build_frame,
    parse_frame,
)
from .commands import MessageName, build_message
