"""Command-line runner: open the terminal port and drive the payment loop."""

from __future__ import annotations

import argparse
import logging

from .config import TerminalConfig
from .controller import ControlLoop
from .terminal import Terminal, TerminalError
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace) -> TerminalConfig:
    base = TerminalConfig.load(args.config) if args.config else TerminalConfig()
    cfg = TerminalConfig.from_env(base)
    overrides = {
        "port": args.port,
        "baud_rate": args.baud_rate,
        "keepalive_interval_s": args.keepalive_interval,
        "poll_interval_s": args.poll_interval,
        "log_level": args.log_level,
    }
    values = cfg.to_dict()
    values.update({k: v for k, v in overrides.items() if v is not None})
    if args.legacy_framing:
        values["verify_checksum"] = False
    return TerminalConfig.from_dict(values)


def cmd_run(args: argparse.Namespace) -> int:
    try:
        cfg = build_config(args)
    except ValueError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error("%s", e)
        return 2

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    conn = SerialConnection(cfg.port, cfg.baud_rate, cfg.read_timeout_ms)
    try:
        conn.open()
        terminal = Terminal(
            conn,
            verify_checksum=cfg.verify_checksum,
            max_read_size=cfg.max_read_size,
            read_timeout_ms=cfg.read_timeout_ms,
        )
        terminal.bootstrap()
        loop = ControlLoop(
            terminal,
            keepalive_interval_s=cfg.keepalive_interval_s,
            poll_interval_s=cfg.poll_interval_s,
        )
        loop.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0
    except (ConnectionError, TerminalError) as e:
        logger.error("%s", e)
        return 1
    finally:
        conn.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(
        prog="vtk-terminal",
        description="Run the VTK payment terminal host loop.",
    )
    p.add_argument("--config", help="JSON config file")
    p.add_argument("--port", help="Serial device, e.g. /dev/ttyUSB0")
    p.add_argument("--baud-rate", type=int)
    p.add_argument("--keepalive-interval", type=float, help="Seconds between IDL keepalives")
    p.add_argument("--poll-interval", type=float, help="Seconds to sleep between cycles")
    p.add_argument(
        "--legacy-framing",
        action="store_true",
        help="Accept inbound frames without checking the CRC",
    )
    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    p.set_defaults(func=cmd_run)

    args = p.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
