import pytest

from powgate.config import Settings
from powgate.main import create_dispatcher
from powgate.server.dispatcher import DispatcherBuilder
from powgate.services.pow_service import ProofOfWork
from powgate.services.replay_guard import InMemoryReplayGuard
from tests.test_utils import FIXED_NOW


@pytest.fixture
def fixed_clock():
    """A clock frozen at noon UTC."""
    return lambda: FIXED_NOW


@pytest.fixture
def replay_guard():
    return InMemoryReplayGuard()


@pytest.fixture
def pow_engine(replay_guard, fixed_clock):
    """A verifying engine at a difficulty cheap enough to solve in tests."""
    return ProofOfWork(8, replay_guard, clock=fixed_clock)


@pytest.fixture
def serve():
    """Start a dispatcher with the given handlers on an ephemeral port."""
    dispatchers = []

    def start(handlers, **kwargs):
        builder = DispatcherBuilder()
        for name, handler in handlers.items():
            builder.register_handler(name, handler)
        dispatcher = builder.build(**kwargs)
        dispatcher.listen("127.0.0.1", 0)
        dispatchers.append(dispatcher)
        return dispatcher

    yield start

    for dispatcher in dispatchers:
        dispatcher.shutdown()


@pytest.fixture
def quote_server():
    """The fully wired quote server at difficulty 8."""
    dispatcher = create_dispatcher(Settings(bits=8, port=0))
    dispatcher.listen("127.0.0.1", 0)
    try:
        yield dispatcher
    finally:
        dispatcher.shutdown()
