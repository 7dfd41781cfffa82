"""Runtime configuration: defaults, JSON file, and environment overrides."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from .controller import KEEPALIVE_INTERVAL_S, POLL_INTERVAL_S
from .protocol.framing import MAX_READ_SIZE
from .transport.serial_connection import DEFAULT_BAUD_RATE, DEFAULT_PORT, READ_TIMEOUT_MS

ENV_PREFIX = "VTK_"

_ENV_NAMES = {
    "port": "PORT",
    "baud_rate": "BAUD_RATE",
    "read_timeout_ms": "READ_TIMEOUT_MS",
    "max_read_size": "MAX_READ_SIZE",
    "keepalive_interval_s": "KEEPALIVE_INTERVAL",
    "poll_interval_s": "POLL_INTERVAL",
    "verify_checksum": "VERIFY_CHECKSUM",
    "log_level": "LOG_LEVEL",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


@dataclass
class TerminalConfig:
    """Settings for one terminal session."""

    port: str = DEFAULT_PORT
    baud_rate: int = DEFAULT_BAUD_RATE
    read_timeout_ms: int = READ_TIMEOUT_MS
    max_read_size: int = MAX_READ_SIZE
    keepalive_interval_s: float = KEEPALIVE_INTERVAL_S
    poll_interval_s: float = POLL_INTERVAL_S
    verify_checksum: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.baud_rate = int(self.baud_rate)
        self.read_timeout_ms = int(self.read_timeout_ms)
        self.max_read_size = int(self.max_read_size)
        self.keepalive_interval_s = float(self.keepalive_interval_s)
        self.poll_interval_s = float(self.poll_interval_s)
        self.verify_checksum = _to_bool(self.verify_checksum)
        self.log_level = str(self.log_level).upper()

        if self.baud_rate <= 0:
            raise ValueError(f"baud_rate must be positive, got {self.baud_rate}")
        if self.read_timeout_ms <= 0:
            raise ValueError(
                f"read_timeout_ms must be positive, got {self.read_timeout_ms}"
            )
        if self.max_read_size < 9:
            raise ValueError(
                f"max_read_size must be at least 9, got {self.max_read_size}"
            )
        if self.keepalive_interval_s <= 0:
            raise ValueError("keepalive_interval_s must be positive")
        if self.poll_interval_s < 0:
            raise ValueError("poll_interval_s must not be negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TerminalConfig:
        """Build a config from a mapping; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def load(cls, path: str | Path) -> TerminalConfig:
        """Load a JSON config file.

        Raises:
            ValueError: If the file is missing, unreadable, or not a JSON object.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Could not load config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config {path} must contain a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_env(
        cls,
        base: TerminalConfig | None = None,
        environ: dict[str, str] | None = None,
    ) -> TerminalConfig:
        """Apply ``VTK_*`` environment variables on top of ``base``."""
        env = os.environ if environ is None else environ
        values = (base or cls()).to_dict()
        for name, suffix in _ENV_NAMES.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw is not None:
                values[name] = raw
        return cls.from_dict(values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
