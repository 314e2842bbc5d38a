"""TCP server that evaluates whitespace-separated expressions.

Each client connection is read once (up to 1023 bytes); every expression in
the request is evaluated and the results are sent back on one line, after
which the connection is closed.
"""

from __future__ import annotations

import re
import selectors
import socket
import sys
from collections.abc import Sequence

from .calculator import CalculatorError, evaluate

__all__ = ["process_request", "CalculatorServer", "main"]

_READ_SIZE = 1023
_WORD_PATTERN = re.compile(r"[^ \t\n\v\f\r]+")


def process_request(request: str) -> str:
    """Evaluate each whitespace-separated expression and build the reply line."""
    parts = []
    for expression in _WORD_PATTERN.findall(request):
        try:
            parts.append(f"{evaluate(expression)} ")
        except (CalculatorError, RecursionError):
            parts.append("ERROR ")
    return "".join(parts) + "\n"


def _decode(data: bytes) -> str:
    return data.split(b"\0", 1)[0].decode("latin-1")


class CalculatorServer:
    """Non-blocking, single-threaded calculator server."""

    def __init__(self, port: int, host: str = "0.0.0.0") -> None:
        self._closed = False
        self._selector = selectors.DefaultSelector()
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._listener.bind((host, port))
            self._listener.listen(socket.SOMAXCONN)
            self._listener.setblocking(False)
            self._selector.register(self._listener, selectors.EVENT_READ)
        except BaseException:
            self._listener.close()
            self._selector.close()
            raise

    @property
    def address(self) -> tuple[str, int]:
        """The (host, port) the server is bound to."""
        host, port = self._listener.getsockname()[:2]
        return host, port

    def serve_forever(self) -> None:
        """Accept and answer clients until interrupted."""
        print(f"Server listening on port {self.address[1]}", flush=True)
        while True:
            self.handle_once()

    def handle_once(self, timeout: float | None = None) -> int:
        """Wait for one round of events and handle them; return how many there were."""
        events = self._selector.select(timeout)
        for key, _mask in events:
            if key.fileobj is self._listener:
                self._accept()
            else:
                self._serve_client(key.fileobj)
        return len(events)

    def _accept(self) -> None:
        try:
            conn, _addr = self._listener.accept()
        except OSError:
            return
        conn.setblocking(False)
        self._selector.register(conn, selectors.EVENT_READ)

    def _serve_client(self, conn: socket.socket) -> None:
        try:
            data = conn.recv(_READ_SIZE)
        except OSError:
            data = b""
        if data:
            response = process_request(_decode(data))
            try:
                conn.send(response.encode("latin-1"))
            except OSError:
                pass
        self._selector.unregister(conn)
        conn.close()

    def close(self) -> None:
        """Close the listening socket and every open client connection."""
        if self._closed:
            return
        self._closed = True
        for key in list(self._selector.get_map().values()):
            self._selector.unregister(key.fileobj)
            key.fileobj.close()
        self._selector.close()
        self._listener.close()

    def __enter__(self) -> CalculatorServer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the server on the port given on the command line."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        print("Usage: tcpcalc-server <port>", file=sys.stderr)
        return 1

    try:
        port = int(args[0])
    except ValueError:
        print(f"Server error: invalid port {args[0]!r}", file=sys.stderr)
        return 1

    try:
        with CalculatorServer(port) as server:
            server.serve_forever()
    except (OSError, OverflowError) as exc:
        print(f"Server error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0