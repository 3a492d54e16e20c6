"""
Error taxonomy for the proof-of-work gate.

Every error carries a short, human readable message. Messages are written back
to the requester verbatim, so they never include tracebacks or internal state.
"""


class PowGateError(Exception):
    """Base class for all gate errors."""

    default_message = "internal error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


# Request framing


class MalformedRequest(PowGateError):
    default_message = "wrong request format"


class UnknownOperation(PowGateError):
    default_message = "unknown handler"


# Stamp validation


class StampError(PowGateError, ValueError):
    """A stamp failed decoding or verification."""


class MalformedStamp(StampError):
    default_message = "wrong hashcash len"


class InvalidDifficulty(StampError):
    default_message = "wrong difficulty"


class InsufficientWork(StampError):
    default_message = "wrong hash"


class ExpiredOrFutureDated(StampError):
    default_message = "date is too far into the future"


class InvalidResource(StampError):
    default_message = "wrong resource"


class ReplayDetected(StampError):
    default_message = "hash has already been used up"


class RandomnessUnavailable(PowGateError):
    default_message = "getting random bytes"


class BindFailed(PowGateError):
    default_message = "listening tcp"


# Client side


class SolveCancelled(PowGateError):
    default_message = "solving cancelled"


class SolveTimeout(SolveCancelled):
    default_message = "solving timed out"


class ProtocolError(PowGateError):
    default_message = "wrong response"


class ServerRejected(PowGateError):
    """The server answered with a non-success status code."""

    def __init__(self, code: int, body: str):
        super().__init__(body or f"status {code}")
        self.code = code
        self.body = body
