#!/usr/bin/env python3
"""
Smoke test for powgate deployments.

This script is intentionally a deploy guardrail:
- Fast (seconds at the default difficulty of a staging server)
- Actionable failures (step name, status code, server reason)

Flow:
1. Challenge (connect + `challenge`)
2. Solve (local proof of work, bounded by --solve-timeout)
3. Redeem (`get_quote` with the solved stamp)
4. Replay (redeeming the same stamp again must be rejected)

Usage:
    ./scripts/smoke-test.py staging.example.com 8081
    ./scripts/smoke-test.py 127.0.0.1 8081 --skip-replay
"""

import argparse
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from powgate.client import Connection, QuoteClient
from powgate.errors import ServerRejected
from powgate.services.pow_service import ProofOfWork, extract_difficulty

SkipCheck = Callable[["SmokeContext"], str | None]

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_SOLVE_TIMEOUT_SECONDS = 120.0
REPLAY_REASON = "hash has already been used up"


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


@dataclass
class SmokeContext:
    conn: Connection
    solve_timeout: float

    challenge: str | None = None
    solved: str | None = None

    def require_challenge(self) -> str:
        if not self.challenge:
            raise RuntimeError("Missing challenge (step ordering bug)")
        return self.challenge

    def require_solved(self) -> str:
        if not self.solved:
            raise RuntimeError("Missing solved stamp (step ordering bug)")
        return self.solved


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[SmokeContext], None]
    # Return `None` to run the step; return a string to skip with that reason.
    skip_reason: SkipCheck | None = None


@dataclass(frozen=True)
class StepResult:
    name: str
    status: str  # passed|skipped|failed
    seconds: float
    detail: str | None = None


def _print_summary(results: list[StepResult], total_seconds: float) -> None:
    log("Summary:")
    for result in results:
        suffix = f" - {result.detail}" if result.detail else ""
        log(f"  {result.status.upper():7} {result.name} ({result.seconds:.2f}s){suffix}")
    log(f"Total: {total_seconds:.2f}s")


def run_steps(ctx: SmokeContext, steps: list[Step]) -> bool:
    results: list[StepResult] = []
    overall_start = time.time()

    for step in steps:
        reason = step.skip_reason(ctx) if step.skip_reason else None
        if reason:
            log(f"SKIP: {step.name}: {reason}")
            results.append(StepResult(step.name, "skipped", 0.0, reason))
            continue

        log(f"STEP: {step.name}")
        start = time.time()
        try:
            step.run(ctx)
        except Exception as e:
            elapsed = time.time() - start
            results.append(StepResult(step.name, "failed", elapsed, str(e)))
            _print_summary(results, time.time() - overall_start)
            return False

        elapsed = time.time() - start
        results.append(StepResult(step.name, "passed", elapsed))
        log(f"OK: {step.name} ({elapsed:.2f}s)")

    _print_summary(results, time.time() - overall_start)
    return True


def step_challenge(ctx: SmokeContext) -> None:
    ctx.challenge = ctx.conn.request_challenge()
    log(f"Challenge: {ctx.challenge} (difficulty {extract_difficulty(ctx.challenge)})")


def step_solve(ctx: SmokeContext) -> None:
    challenge = ctx.require_challenge()
    solver = ProofOfWork(extract_difficulty(challenge))
    ctx.solved = solver.solve(challenge, timeout=ctx.solve_timeout)
    log(f"Solved: {ctx.solved}")


def step_redeem(ctx: SmokeContext) -> None:
    quote = ctx.conn.redeem(ctx.require_solved())
    if not quote:
        raise RuntimeError("Server returned an empty quote")
    log(f"Quote: {quote}")


def step_replay(ctx: SmokeContext) -> None:
    try:
        ctx.conn.redeem(ctx.require_solved())
    except ServerRejected as e:
        if e.body != REPLAY_REASON:
            raise RuntimeError(f"Unexpected replay rejection {e.code}: {e.body}") from e
        return
    raise RuntimeError("Replayed stamp was accepted")


def skip_replay_disabled(_: SmokeContext) -> str | None:
    return "disabled via --skip-replay"


def main() -> int:
    parser = argparse.ArgumentParser(description="powgate smoke test")
    parser.add_argument("host", help="Server host (e.g., staging.example.com)")
    parser.add_argument("port", type=int, help="Server port")
    parser.add_argument(
        "--skip-replay",
        action="store_true",
        help="Skip the replay rejection check",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help=f"Socket timeout seconds (default: {DEFAULT_TIMEOUT_SECONDS:g})",
    )
    parser.add_argument(
        "--solve-timeout",
        type=float,
        default=DEFAULT_SOLVE_TIMEOUT_SECONDS,
        help=f"Give up solving after this many seconds (default: {DEFAULT_SOLVE_TIMEOUT_SECONDS:g})",
    )
    args = parser.parse_args()

    try:
        client = QuoteClient(args.host, args.port, timeout=args.timeout)
        with client.connect() as conn:
            ctx = SmokeContext(conn=conn, solve_timeout=args.solve_timeout)
            steps: list[Step] = [
                Step("challenge", step_challenge),
                Step("solve", step_solve),
                Step("redeem", step_redeem),
                Step(
                    "replay",
                    step_replay,
                    skip_reason=skip_replay_disabled if args.skip_replay else None,
                ),
            ]
            ok = run_steps(ctx, steps)
        return 0 if ok else 1
    except Exception as e:
        log(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
