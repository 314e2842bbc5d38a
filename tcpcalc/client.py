"""Load-generating client for the calculator server.

Opens several TCP sessions at once, sends each a random expression split into
random fragments, and checks every reply against a locally computed result.
"""

from __future__ import annotations

import random
import re
import selectors
import socket
import sys
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from .calculator import CalculatorError, evaluate

__all__ = [
    "ClientConfig",
    "Verdict",
    "Outcome",
    "generate_expression",
    "split_expression",
    "expected_result",
    "verify_result",
    "CalculatorClient",
    "parse_args",
    "main",
]

_READ_SIZE = 1023
_OPERATORS = "+-*/"
_WORD_PATTERN = re.compile(r"[^ \t\n\v\f\r]+")
_LEADING_INT = re.compile(r"[ \t\n\v\f\r]*([+-]?\d+)")
_USAGE_LINES = (
    "Usage: tcpcalc-client <n> <connections> <server_addr> <server_port>",
    "  n           - number of operands in each expression",
    "  connections - number of TCP sessions to the server",
    "  server_addr - address of the TCP server",
    "  server_port - port of the TCP server",
)


@dataclass(frozen=True)
class ClientConfig:
    """Settings for one client run."""

    numbers: int
    connections: int
    server_addr: str
    server_port: int


class Verdict(Enum):
    """How a server reply compares with the expected result."""

    OK = "OK"
    MISMATCH = "MISMATCH"
    ERROR = "ERROR"
    EMPTY = "EMPTY"
    PARSE_ERROR = "PARSE_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"


@dataclass(frozen=True)
class Outcome:
    """The result of checking one server reply."""

    expression: str
    response: str
    expected: int
    verdict: Verdict
    server_result: int | None = None
    token: str | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.verdict is Verdict.OK

    def message(self) -> str:
        """The report line for this outcome."""
        head = f"Expression: {self.expression}"
        tail = f"Expected: {self.expected}"
        if self.verdict is Verdict.EMPTY:
            return f"{head} | Server response: EMPTY | {tail}"
        if self.verdict is Verdict.ERROR:
            return f"{head} | Server response: ERROR | {tail}"
        if self.verdict is Verdict.OK:
            return f"✓ {head} | Server response: {self.server_result} | {tail} | OK"
        if self.verdict is Verdict.MISMATCH:
            return f"✗ {head} | Server response: {self.server_result} | {tail} | MISMATCH"
        if self.verdict is Verdict.PARSE_ERROR:
            return (
                f"✗ {head} | Server response: {self.token} | {tail}"
                f" | PARSE_ERROR: {self.detail}"
            )
        return f"✗ {head} | Server response: {self.response} | {tail} | INVALID_RESPONSE"


def _parse_leading_int(text: str, bits: int, name: str) -> int:
    """Parse a leading signed integer, ignoring trailing characters."""
    match = _LEADING_INT.match(text)
    if match is None:
        raise ValueError(name)
    value = int(match.group(1))
    limit = 1 << (bits - 1)
    if not -limit <= value < limit:
        raise ValueError(name)
    return value


def generate_expression(numbers: int, rng: random.Random) -> str:
    """Build a random expression of `numbers` operands between 1 and 100."""
    parts = [str(rng.randint(1, 100))]
    for _ in range(1, numbers):
        parts.append(_OPERATORS[rng.randint(0, 3)])
        parts.append(str(rng.randint(1, 100)))
    return "".join(parts)


def split_expression(expression: str, rng: random.Random) -> list[str]:
    """Cut an expression into a random number of non-empty fragments."""
    if not expression:
        return []
    count = rng.randint(1, max(1, len(expression)))
    if count == 1:
        return [expression]

    cuts = sorted({rng.randint(1, len(expression) - 1) for _ in range(count - 1)})
    bounds = [0, *cuts, len(expression)]
    return [expression[start:end] for start, end in zip(bounds, bounds[1:])]


def expected_result(expression: str) -> int:
    """Evaluate an expression locally, giving 0 if it cannot be evaluated."""
    try:
        return evaluate(expression)
    except (CalculatorError, RecursionError):
        return 0


def verify_result(expression: str, response: str, expected: int) -> Outcome:
    """Compare the first word of a server reply with the expected value."""
    if not response:
        return Outcome(expression, response, expected, Verdict.EMPTY)

    match = _WORD_PATTERN.search(response)
    if match is None:
        return Outcome(expression, response, expected, Verdict.INVALID_RESPONSE)

    word = match.group()
    if word == "ERROR":
        return Outcome(expression, response, expected, Verdict.ERROR, token=word)

    try:
        value = _parse_leading_int(word, 64, "stoll")
    except ValueError as exc:
        return Outcome(
            expression, response, expected, Verdict.PARSE_ERROR, token=word, detail=str(exc)
        )

    verdict = Verdict.OK if value == expected else Verdict.MISMATCH
    return Outcome(expression, response, expected, verdict, server_result=value, token=word)


@dataclass
class _Connection:
    sock: socket.socket
    expression: str
    expected: int
    pending: deque[bytes] = field(default_factory=deque)
    received: bytes = b""
    sent_complete: bool = False
    received_complete: bool = False
    closed: bool = False
    outcome: Outcome | None = None


class CalculatorClient:
    """Runs many concurrent sessions against a calculator server."""

    def __init__(self, config: ClientConfig, rng: random.Random | None = None) -> None:
        self.config = config
        self._rng = rng if rng is not None else random.Random()

    def run(self) -> list[Outcome]:
        """Open every session, drive them to completion and return the outcomes."""
        selector = selectors.DefaultSelector()
        connections: list[_Connection] = []
        try:
            for _ in range(self.config.connections):
                conn = self._open_connection()
                connections.append(conn)
                selector.register(conn.sock, selectors.EVENT_WRITE, conn)

            active = len(connections)
            while active > 0:
                for key, mask in selector.select():
                    self._handle_event(selector, key.data, mask)
                for conn in connections:
                    if not conn.closed and conn.sent_complete and conn.received_complete:
                        selector.unregister(conn.sock)
                        conn.sock.close()
                        conn.closed = True
                        active -= 1
        finally:
            for conn in connections:
                if not conn.closed:
                    conn.sock.close()
                    conn.closed = True
            selector.close()

        return [conn.outcome for conn in connections if conn.outcome is not None]

    def _open_connection(self) -> _Connection:
        sock = self._connect()
        expression = generate_expression(self.config.numbers, self._rng)
        fragments = split_expression(expression, self._rng)
        return _Connection(
            sock=sock,
            expression=expression,
            expected=expected_result(expression),
            pending=deque(fragment.encode("ascii") for fragment in fragments),
        )

    def _connect(self) -> socket.socket:
        try:
            socket.inet_pton(socket.AF_INET, self.config.server_addr)
        except OSError:
            raise ValueError("Invalid server address") from None

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.connect((self.config.server_addr, self.config.server_port))
        except (OSError, OverflowError) as exc:
            sock.close()
            raise ConnectionError("Failed to connect to server") from exc
        sock.setblocking(False)
        return sock

    def _handle_event(
        self, selector: selectors.BaseSelector, conn: _Connection, mask: int
    ) -> None:
        if mask & selectors.EVENT_WRITE and not conn.sent_complete:
            self._send(selector, conn)
        if mask & selectors.EVENT_READ and not conn.received_complete:
            self._receive(conn)

    @staticmethod
    def _fail(conn: _Connection, message: str) -> None:
        print(message, file=sys.stderr)
        conn.sent_complete = True
        conn.received_complete = True

    def _send(self, selector: selectors.BaseSelector, conn: _Connection) -> None:
        while conn.pending:
            try:
                sent = conn.sock.send(conn.pending[0])
            except BlockingIOError:
                return
            except OSError:
                self._fail(conn, f"Send error for expression: {conn.expression}")
                return
            if sent > 0:
                conn.pending.popleft()

        if conn.sent_complete:
            return
        try:
            sent = conn.sock.send(b" ")
        except BlockingIOError:
            return
        except OSError:
            self._fail(conn, f"Send error for expression: {conn.expression}")
            return
        if sent > 0:
            conn.sent_complete = True
            selector.modify(conn.sock, selectors.EVENT_READ, conn)

    def _receive(self, conn: _Connection) -> None:
        while True:
            try:
                data = conn.sock.recv(_READ_SIZE)
            except BlockingIOError:
                return
            except OSError as exc:
                print(
                    f"Read error for expression: {conn.expression} (errno: {exc.errno})",
                    file=sys.stderr,
                )
                conn.received_complete = True
                return

            if not data:
                print("Connection closed by server")
                conn.received_complete = True
                if conn.received:
                    self._verify(conn)
                return

            conn.received += data.split(b"\0", 1)[0]
            if b"\n" in conn.received:
                conn.received_complete = True
                self._verify(conn)
                return

    @staticmethod
    def _verify(conn: _Connection) -> None:
        outcome = verify_result(conn.expression, conn.received.decode("latin-1"), conn.expected)
        conn.outcome = outcome
        print(outcome.message(), file=sys.stdout if outcome.ok else sys.stderr)


def parse_args(argv: Sequence[str]) -> ClientConfig:
    """Build a ClientConfig from the four command-line arguments."""
    args = list(argv)
    if len(args) != 4:
        raise ValueError("expected 4 arguments: <n> <connections> <server_addr> <server_port>")

    numbers = _parse_leading_int(args[0], 32, "stoi")
    connections = _parse_leading_int(args[1], 32, "stoi")
    server_port = _parse_leading_int(args[3], 32, "stoi")

    if numbers <= 0:
        raise ValueError("n must be positive")
    if connections <= 0:
        raise ValueError("connections must be positive")
    if not 0 < server_port <= 65535:
        raise ValueError("server_port must be between 0 and 65534")

    return ClientConfig(
        numbers=numbers,
        connections=connections,
        server_addr=args[2],
        server_port=server_port,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Run the client with command-line arguments."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 4:
        print("\n".join(_USAGE_LINES), file=sys.stderr)
        return 1

    try:
        config = parse_args(args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        CalculatorClient(config).run()
    except (OSError, ValueError) as exc:
        print(f"Client error: {exc}", file=sys.stderr)
        return 1
    return 0