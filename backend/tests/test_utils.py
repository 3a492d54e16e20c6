"""Shared test utilities."""

import socket
from datetime import UTC, datetime

from powgate.services.pow_service import digest_int

FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def open_line_socket(address, timeout=5.0):
    """Connect to a dispatcher and return (socket, reader)."""
    sock = socket.create_connection(address, timeout=timeout)
    return sock, sock.makefile("rb")


def send_line(sock, reader, line: str) -> str:
    """Send one raw request line and read one response line."""
    sock.sendall(line.encode())
    return reader.readline().decode()


def find_unsolved(challenge: str, target: int) -> str:
    """First counter whose stamp does NOT beat the target."""
    counter = 0
    while True:
        candidate = f"{challenge}:{counter}"
        if digest_int(candidate) >= target:
            return candidate
        counter += 1
