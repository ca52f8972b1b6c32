#!/usr/bin/env python3
"""Reconnecting socket client tool.

Connects to a TCP server, sends messages, prints whatever comes back and keeps
the connection alive until the duration expires or Ctrl-C. The `serve`
subcommand runs a local echo peer to talk to.
"""

import argparse
import logging
import signal
import sys
import threading
import time
from enum import IntEnum
from types import FrameType

from client.engine import SocketClient
from common.errors import FaultCategory, FaultInfo
from common.listener import ClientEventListener
from common.protocol import (
    DEFAULT_HEARTBEAT_INTERVAL_MS,
    DEFAULT_RETRY_COUNT,
    DEFAULT_TIMEOUT_MS,
    Phase,
)
from common.settings import ClientSettings
from server.peer import EchoPeer

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9000
DEFAULT_DURATION_S = 10


class ExitCode(IntEnum):
    """Exit codes for the client tool."""

    SUCCESS = 0  # Connected and every send completed
    CONNECT_FAILED = 1  # Never connected, or retries exhausted
    USAGE = 2  # Bad arguments
    SEND_FAILED = 3  # Connected but at least one send failed


class ConsoleListener(ClientEventListener):
    """Prints received data and tracks connection milestones."""

    def __init__(self) -> None:
        self.connected = threading.Event()
        self.gave_up = threading.Event()
        self.bytes_received = 0

    def on_data_received(self, data: bytes) -> None:
        self.bytes_received += len(data)
        print(f"recv {len(data)} bytes: {data!r}")

    def on_error_received(self, fault: FaultInfo) -> None:
        logger.error(fault.summary)
        if fault.category == FaultCategory.RETRY_EXHAUSTED or fault.phase == Phase.CONNECT:
            self.gave_up.set()

    def on_disconnected(self) -> None:
        logger.info("Disconnected")

    def on_connected(self) -> None:
        logger.info("Connected")
        self.connected.set()

    def on_retry_started(self) -> None:
        logger.info("Reconnecting...")


def _install_stop_handler(stop: threading.Event) -> None:
    def handler(_sig: int, _frame: FrameType | None) -> None:
        logger.info("Signal received - shutting down")
        stop.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def _wait(stop: threading.Event, duration_s: int, until: threading.Event | None = None) -> None:
    """Sleep until stop, until (if given) or the duration expires (0 = forever)."""
    start = time.monotonic()
    while not stop.is_set():
        if until is not None and until.is_set():
            return
        if duration_s and time.monotonic() - start >= duration_s:
            return
        stop.wait(0.1)


def run_client(settings: ClientSettings, messages: list[str], duration_s: int) -> int:
    """Connect, send messages and stay connected for duration_s. Returns exit code."""
    stop = threading.Event()
    _install_stop_handler(stop)
    listener = ConsoleListener()

    with SocketClient(listener, settings) as client:
        logger.info(f"Connecting to {settings.address} (retries={settings.retry_count})")
        while not stop.is_set() and not listener.connected.is_set():
            if listener.gave_up.wait(0.1):
                return ExitCode.CONNECT_FAILED

        if stop.is_set():
            return ExitCode.SUCCESS if listener.connected.is_set() else ExitCode.CONNECT_FAILED

        failed = 0
        for text in messages:
            if not client.send_message(text.encode("utf-8")).result():
                failed += 1
        if messages:
            logger.info(f"Sent {len(messages) - failed}/{len(messages)} messages")

        _wait(stop, duration_s, until=listener.gave_up)

    print(f"received={listener.bytes_received} bytes")
    if listener.gave_up.is_set():
        return ExitCode.CONNECT_FAILED
    return ExitCode.SEND_FAILED if failed else ExitCode.SUCCESS


def run_server(host: str, port: int, echo: bool, duration_s: int) -> int:
    """Run an echo peer until the duration expires or a signal arrives."""
    stop = threading.Event()
    _install_stop_handler(stop)
    try:
        peer = EchoPeer(host, port, echo=echo).start()
    except OSError as e:
        logger.error(f"Failed to listen on {host}:{port}: {e}")
        return ExitCode.CONNECT_FAILED
    try:
        _wait(stop, duration_s)
    finally:
        peer.stop()
    print(f"accepted={peer.accept_count} received={len(peer.received)} bytes")
    return ExitCode.SUCCESS


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add address, duration and verbosity arguments to a parser."""
    parser.add_argument(
        "-H", "--host", type=str, default=DEFAULT_HOST, help=f"Host (default: {DEFAULT_HOST})"
    )
    parser.add_argument(
        "-p", "--port", type=int, default=DEFAULT_PORT, help=f"Port (default: {DEFAULT_PORT})"
    )
    parser.add_argument(
        "-d",
        "--duration",
        type=int,
        default=DEFAULT_DURATION_S,
        help=f"Duration in seconds, 0 = until Ctrl-C (default: {DEFAULT_DURATION_S})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Reconnecting TCP client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve -p 9000                 Run an echo peer on port 9000
  %(prog)s -p 9000 -m hello -m world     Send two messages and print replies
  %(prog)s -p 9000 -r 5 -d 0             Stay connected, retry up to 5 times
""",
    )

    subparsers = parser.add_subparsers(dest="mode")

    serve_parser = subparsers.add_parser("serve", help="Run a local echo peer")
    _add_common_args(serve_parser)
    serve_parser.add_argument(
        "--no-echo", action="store_true", help="Record received bytes without echoing"
    )

    _add_common_args(parser)
    parser.add_argument(
        "-t",
        "--timeout-ms",
        type=int,
        default=DEFAULT_TIMEOUT_MS,
        help=f"Connect/read timeout and retry interval (default: {DEFAULT_TIMEOUT_MS})",
    )
    parser.add_argument(
        "-r",
        "--retries",
        type=int,
        default=DEFAULT_RETRY_COUNT,
        help=f"Reconnection attempts (default: {DEFAULT_RETRY_COUNT})",
    )
    parser.add_argument(
        "-i",
        "--heartbeat-ms",
        type=int,
        default=DEFAULT_HEARTBEAT_INTERVAL_MS,
        help=f"Heartbeat interval (default: {DEFAULT_HEARTBEAT_INTERVAL_MS})",
    )
    parser.add_argument("--heartbeat", type=str, help="Heartbeat payload text")
    parser.add_argument(
        "--reset-gate",
        action="store_true",
        help="Make sends wait again after every disconnect",
    )
    parser.add_argument(
        "-m", "--message", action="append", default=[], help="Message to send (repeatable)"
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.mode == "serve":
        return run_server(args.host, args.port, not args.no_echo, args.duration)

    try:
        settings = ClientSettings(
            host=args.host,
            port=args.port,
            timeout_ms=args.timeout_ms,
            retry_count=args.retries,
            heartbeat_interval_ms=args.heartbeat_ms,
            reset_gate_on_disconnect=args.reset_gate,
        )
    except ValueError as e:
        logger.error(f"Invalid settings: {e}")
        return ExitCode.USAGE
    if args.heartbeat:
        settings = settings.with_heartbeat_text(args.heartbeat)

    return run_client(settings, args.message, args.duration)


if __name__ == "__main__":
    sys.exit(main())
