"""Test configuration and fixtures for Screen Stake."""
import os
import pytest
from loguru import logger
from screenstake.core.auth import OwnershipGate
from screenstake.core.events import EventLog
from screenstake.core.ledger import StakeLedger
from screenstake.core.store import StakeStore
from screenstake.core.transfer import LocalTransfer

OPERATOR = "operator.testnet"
START = 1_700_000_000
DAY = 86400


class FakeClock:
    """Clock the tests move forward by hand."""

    def __init__(self, now: int = START):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def operator():
    return OPERATOR


@pytest.fixture
def gate():
    return OwnershipGate(OPERATOR)


@pytest.fixture
def transfer():
    return LocalTransfer()


@pytest.fixture
def event_log():
    return EventLog()


@pytest.fixture
def ledger(gate, transfer, event_log, clock):
    """Ledger without persistence."""
    return StakeLedger(gate=gate, transfer=transfer, events=event_log, clock=clock)


@pytest.fixture
def state_dir(tmp_path):
    """Point the ledger state directory at a temporary path."""
    path = tmp_path / "state"
    os.environ["SCREEN_STAKE_STATE_DIR"] = str(path)
    yield path
    os.environ.pop("SCREEN_STAKE_STATE_DIR", None)


@pytest.fixture
def store(state_dir):
    return StakeStore(state_dir)


@pytest.fixture
def env_setup():
    """Set up environment variables for testing."""
    os.environ["NEAR_ENV"] = "testnet"
    os.environ["SCREEN_STAKE_LOG_LEVEL"] = "DEBUG"
    yield
    del os.environ["NEAR_ENV"]
    del os.environ["SCREEN_STAKE_LOG_LEVEL"]


@pytest.fixture
def logged_warnings():
    """Collect loguru messages logged at WARNING or above."""
    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="WARNING")
    yield messages
    logger.remove(handler_id)
