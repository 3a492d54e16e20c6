"""
Client for the proof-of-work gated quote server.

The full exchange runs over a single connection: request a challenge, solve
it locally, then redeem the solved stamp for a quote.
"""

import socket
import threading
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from powgate.errors import ProtocolError, ServerRejected
from powgate.routers.quotes import CHALLENGE_OP, GET_QUOTE_OP
from powgate.schemas.protocol import Request, Response
from powgate.services.pow_service import ProofOfWork, extract_difficulty

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 30.0


class Connection:
    """One open connection to the server. Requests are strictly sequential."""

    def __init__(self, sock: socket.socket):
        self._sock = sock
        self._reader = sock.makefile("rb")

    def request(self, op: str, payload: str = "") -> Response:
        self._sock.sendall(Request(op=op, payload=payload).to_line().encode("utf-8"))

        row = self._reader.readline()
        if not row.endswith(b"\n"):
            raise ProtocolError("connection closed before response")
        return Response.from_line(row.decode("utf-8", errors="replace"))

    def request_ok(self, op: str, payload: str = "") -> str:
        response = self.request(op, payload)
        if not response.is_ok:
            raise ServerRejected(response.code, response.body)
        return response.body

    def request_challenge(self) -> str:
        return self.request_ok(CHALLENGE_OP)

    def redeem(self, solved: str) -> str:
        return self.request_ok(GET_QUOTE_OP, solved)

    def close(self) -> None:
        self._reader.close()
        self._sock.close()


class QuoteClient:
    def __init__(self, host: str, port: int, timeout: float | None = DEFAULT_TIMEOUT_SECONDS):
        self.host = host
        self.port = port
        self.timeout = timeout

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        conn = Connection(sock)
        try:
            yield conn
        finally:
            conn.close()

    def get_quote(
        self,
        *,
        solve_timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        """Fetch one quote, paying for it with proof of work."""
        logger.info("quote_fetch_started", host=self.host, port=self.port)

        with self.connect() as conn:
            challenge = conn.request_challenge()
            logger.info("challenge_received", challenge=challenge)

            bits = extract_difficulty(challenge)
            solver = ProofOfWork(bits)

            logger.info("challenge_solving", difficulty=bits)
            solved = solver.solve(challenge, cancel=cancel, timeout=solve_timeout)
            logger.info("challenge_solved", result=solved)

            return conn.redeem(solved)


def fetch_protected_resource(
    host: str,
    port: int,
    *,
    timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    solve_timeout: float | None = None,
    cancel: threading.Event | None = None,
) -> str:
    """Challenge, solve and redeem over one connection. Errors are not retried."""
    return QuoteClient(host, port, timeout=timeout).get_quote(
        solve_timeout=solve_timeout, cancel=cancel
    )
