import argparse
import signal
import sys
import threading

import structlog

from powgate.client import fetch_protected_resource
from powgate.config import Settings, settings
from powgate.errors import BindFailed, PowGateError
from powgate.logging_config import setup_logging
from powgate.routers.quotes import QuoteHandlers
from powgate.server.dispatcher import Dispatcher, DispatcherBuilder
from powgate.services.pow_service import ProofOfWork
from powgate.services.quote_service import QuoteBook
from powgate.services.replay_guard import InMemoryReplayGuard

logger = structlog.get_logger()


def create_dispatcher(config: Settings) -> Dispatcher:
    """Wire the engine, replay guard and handlers into a dispatcher."""
    pow_engine = ProofOfWork(config.bits, InMemoryReplayGuard())
    handlers = QuoteHandlers(QuoteBook(), pow_engine)
    builder = handlers.register(DispatcherBuilder())
    return builder.build(max_line_bytes=config.max_line_bytes)


def run_server(stop: threading.Event | None = None) -> int:
    """Serve until SIGINT/SIGTERM or until stop is set."""
    setup_logging(settings)

    dispatcher = create_dispatcher(settings)
    try:
        dispatcher.listen(settings.host, settings.port)
    except BindFailed as e:
        logger.critical("server_start_failed", error=str(e))
        return 1

    if stop is None:
        stop = threading.Event()

    def handle_signal(signum, frame):
        logger.info("shutdown_requested", signal=signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        stop.wait()
    finally:
        dispatcher.shutdown()
    return 0


def run_client(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Fetch a quote from a powgate server")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--timeout", type=float, default=settings.client_timeout_seconds)
    parser.add_argument(
        "--solve-timeout",
        type=float,
        default=settings.solve_timeout_seconds,
        help="Give up solving after this many seconds",
    )
    args = parser.parse_args(argv)

    setup_logging(settings)

    try:
        quote = fetch_protected_resource(
            args.host,
            args.port,
            timeout=args.timeout,
            solve_timeout=args.solve_timeout,
        )
    except (PowGateError, OSError) as e:
        logger.error("quote_fetch_failed", error=str(e))
        return 1

    print(quote)
    return 0


def server_main() -> None:
    sys.exit(run_server())


def client_main() -> None:
    sys.exit(run_client())
