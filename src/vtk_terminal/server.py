"""MCP server entry point for the VTK payment terminal.

Exposes operator tools and a session resource via the Model Context
Protocol using the official Python MCP SDK with stdio transport. The
control loop only advances while the ``poll`` tool runs, so the server
stays single-threaded.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import TerminalConfig
from .controller import ControlLoop
from .terminal import Terminal, TerminalError
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "vtk-terminal",
    instructions="Operate a VTK cash-acceptance payment terminal over serial",
)

# Global session state
_connection: SerialConnection | None = None
_loop: ControlLoop | None = None

MAX_POLL_CYCLES = 60


def _get_loop() -> ControlLoop:
    """Get the active control loop, raising if not connected."""
    if _loop is None or _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to terminal. Use the 'connect' tool first."
        )
    return _loop


def _status() -> dict[str, Any]:
    if _loop is None or _connection is None:
        return {"connected": False}
    return {
        "connected": _connection.connected,
        "port": _connection.port_info.port,
        "operation_num": _loop.terminal.operation_num,
        "cycles": _loop.cycles,
        "keepalives_sent": _loop.keepalives_sent,
        "completed_payments": list(_loop.completed_payments),
        **_loop.handshake.snapshot(),
    }


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(port: str | None = None) -> dict[str, Any]:
    """Open the serial port and run the terminal bootstrap.

    Settings come from ``VTK_*`` environment variables; ``port``
    overrides the serial device.

    Args:
        port: Serial device path, e.g. /dev/ttyUSB0.
    """
    global _connection, _loop
    if _connection is not None and _connection.connected:
        return {"message": "Already connected", **_status()}

    cfg = TerminalConfig.from_env()
    if port:
        cfg.port = port

    conn = SerialConnection(cfg.port, cfg.baud_rate, cfg.read_timeout_ms)
    conn.open()
    terminal = Terminal(
        conn,
        verify_checksum=cfg.verify_checksum,
        max_read_size=cfg.max_read_size,
        read_timeout_ms=cfg.read_timeout_ms,
    )
    try:
        terminal.bootstrap()
    except TerminalError as e:
        conn.close()
        return {"connected": False, "error": str(e)}
    except ConnectionError:
        conn.close()
        raise

    _connection = conn
    _loop = ControlLoop(
        terminal,
        keepalive_interval_s=cfg.keepalive_interval_s,
        poll_interval_s=cfg.poll_interval_s,
    )
    return _status()


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial port. Any payment in progress is abandoned."""
    global _connection, _loop
    if _connection is not None:
        _connection.close()
    _connection = None
    _loop = None
    return {"disconnected": True}


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Report connection, operation number, and handshake stage."""
    return _status()


# ─── SESSION TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def poll(cycles: int = 1) -> dict[str, Any]:
    """Run control loop cycles: keepalive check, receive, handshake, sleep.

    Args:
        cycles: Number of cycles to run (1-60).
    """
    if not 1 <= cycles <= MAX_POLL_CYCLES:
        return {"error": f"cycles must be 1-{MAX_POLL_CYCLES}"}

    loop = _get_loop()
    before = len(loop.completed_payments)
    for _ in range(cycles):
        loop.run_once()

    result = _status()
    result["new_payments"] = loop.completed_payments[before:]
    return result


@mcp.tool()
def send_idle() -> dict[str, Any]:
    """Send an IDL keepalive carrying the current operation number."""
    loop = _get_loop()
    loop.terminal.send_keepalive()
    return {"sent": "IDL", "operation_num": loop.terminal.operation_num}


@mcp.tool()
def show_qr(data: str) -> dict[str, Any]:
    """Show a QR code on the terminal screen.

    Args:
        data: QR payload text (at most 255 bytes).
    """
    if len(data.encode("utf-8")) > 255:
        return {"error": "QR data must be at most 255 bytes"}
    loop = _get_loop()
    loop.terminal.show_qr(data)
    return {"sent": "IDL", "qr": data}


@mcp.tool()
def disable_terminal() -> dict[str, Any]:
    """Take the terminal out of service (DIS) and return its reply."""
    loop = _get_loop()
    reply = loop.terminal.disable()
    return {"sent": "DIS", "reply": reply.to_dict() if reply is not None else None}


@mcp.tool()
def reset_session() -> dict[str, Any]:
    """Abandon the payment in progress and return to idle."""
    loop = _get_loop()
    previous = loop.handshake.snapshot()
    loop.handshake.reset()
    return {"previous": previous, **loop.handshake.snapshot()}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("vtk://session")
def resource_session() -> str:
    """Current session status."""
    return json.dumps(_status())


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
