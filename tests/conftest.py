import threading

import pytest
from loguru import logger

from journal.broker import JournalBroker
from journal.core.message import Message
from journal.destinations.interfaces import IDestination


class Collector:
    """Thread-safe callback recording every delivered message."""

    def __init__(self, expected: int = 1):
        self.messages: list[Message] = []
        self._expected = expected
        self._lock = threading.Lock()
        self.done = threading.Event()

    def __call__(self, message: Message):
        with self._lock:
            self.messages.append(message)
            if len(self.messages) >= self._expected:
                self.done.set()

    def wait(self, timeout: float = 5.0) -> bool:
        return self.done.wait(timeout)


class RecordingDestination(IDestination):
    def __init__(self, config: dict | None = None):
        self.config = config or {}
        self.failures_left = self.config.get("failures", 0)
        self.attempts = 0
        self.written: list[Message] = []
        self.connected = False

    def connect(self) -> bool:
        self.connected = True
        return True

    def write(self, message: Message) -> None:
        self.attempts += 1
        if self.failures_left:
            self.failures_left -= 1
            raise ConnectionError("destination unavailable")
        self.written.append(message)

    def stop(self) -> None:
        self.connected = False


@pytest.fixture
def broker():
    broker = JournalBroker(name="test")
    yield broker
    broker.shutdown()
    broker.join(timeout=5)


@pytest.fixture
def log_records():
    """Captures loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda m: records.append(m.record), level="TRACE")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def collector():
    """Factory for message-recording callbacks, eg: collector(expected=3)."""
    return Collector


@pytest.fixture
def recording_destination():
    return RecordingDestination
