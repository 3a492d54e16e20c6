import hashlib
import ipaddress
import secrets
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from powgate.errors import (
    ExpiredOrFutureDated,
    InsufficientWork,
    InvalidResource,
    RandomnessUnavailable,
    ReplayDetected,
    SolveCancelled,
    SolveTimeout,
)
from powgate.services import stamp
from powgate.services.replay_guard import ReplayGuard


NONCE_BYTES = 8
MAX_FUTURE_SKEW = timedelta(days=2)

# How many hashes to try between cancellation checks
SOLVE_CHECK_INTERVAL = 4096


def utcnow() -> datetime:
    return datetime.now(UTC)


def digest_int(text: str) -> int:
    """SHA-256 of text as a 256-bit big-endian unsigned integer."""
    return int.from_bytes(hashlib.sha256(text.encode()).digest(), "big")


def extract_difficulty(text: str) -> int:
    """Difficulty claimed by a challenge, usable before any engine exists."""
    return stamp.parse_difficulty(text)


class ProofOfWork:
    """
    Hashcash proof-of-work engine.

    Issues challenges bound to a resource, solves them by brute force and
    verifies solved stamps against the target this instance owns. Instances
    without a replay guard can only issue and solve.
    """

    def __init__(
        self,
        bits: int,
        replay_guard: ReplayGuard | None = None,
        *,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.version = stamp.VERSION
        self.bits = stamp.check_difficulty(bits)
        self.target = 1 << (256 - self.bits)
        self.replay_guard = replay_guard
        self._random_bytes = random_bytes
        self._clock = clock

    def issue_challenge(self, resource: str) -> str:
        """Build a fresh unsolved stamp for resource, dated today (UTC)."""
        try:
            nonce = self._random_bytes(NONCE_BYTES)
        except (OSError, NotImplementedError) as e:
            raise RandomnessUnavailable(f"getting random bytes: {e}") from e

        return stamp.encode(self.version, self.bits, self._clock().date(), resource, nonce)

    def solve(
        self,
        challenge: str,
        *,
        cancel: threading.Event | None = None,
        timeout: float | None = None,
    ) -> str:
        """
        Find the first counter whose solved stamp beats the target.

        This may run for a long time at high difficulty. Pass a cancel event
        or a timeout in seconds to bound it; SolveCancelled or SolveTimeout is
        raised when either fires.
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        counter = 0

        while True:
            candidate = f"{challenge}:{counter}"
            if digest_int(candidate) < self.target:
                return candidate

            counter += 1
            if counter % SOLVE_CHECK_INTERVAL == 0:
                if cancel is not None and cancel.is_set():
                    raise SolveCancelled(f"solving cancelled after {counter} attempts")
                if deadline is not None and time.monotonic() >= deadline:
                    raise SolveTimeout(f"solving timed out after {counter} attempts")

    def verify(self, text: str) -> None:
        """
        Verify a solved stamp and mark it spent.

        Checks run in order: field count, work, date, resource, replay. The
        first failure raises. A stamp verifies successfully at most once.
        """
        if self.replay_guard is None:
            raise RuntimeError("verification requires a replay guard")

        fields = stamp.split_fields(text)

        # Checked against our own target, not the difficulty the stamp claims
        if digest_int(text) >= self.target:
            raise InsufficientWork()

        raw_date = fields[stamp.DATE_FIELD]
        try:
            # strptime alone accepts unpadded months and days
            if len(raw_date) != stamp.DATE_LENGTH:
                raise ValueError(raw_date)
            issued = datetime.strptime(raw_date, stamp.DATE_FORMAT).replace(tzinfo=UTC)
        except ValueError as e:
            raise ExpiredOrFutureDated(f"wrong date {raw_date}") from e
        if issued > self._clock() + MAX_FUTURE_SKEW:
            raise ExpiredOrFutureDated()

        try:
            ipaddress.ip_address(fields[stamp.RESOURCE_FIELD])
        except ValueError as e:
            raise InvalidResource() from e

        if self.replay_guard.check_and_mark(text):
            raise ReplayDetected()
