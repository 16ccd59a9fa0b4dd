import queue
import threading
from collections.abc import Mapping
from typing import Any, Callable, NamedTuple

from loguru import logger

from .core.errors import InvalidSubscription
from .core.message import Message
from .routing.query import Query

Callback = Callable[[Message], Any]

# Pushed onto the queue by shutdown() to wake a blocked dispatch loop.
_SHUTDOWN = object()


class Subscription(NamedTuple):
    query: Query
    callback: Callback


class JournalBroker:
    """
    Publish/subscribe broker with a single dispatch thread.

    Messages are delivered strictly in publish order. For each message the
    optional global consumer runs first, then every subscription whose query
    matches, in registration order. Callback errors are logged and never stop
    the dispatch loop.
    """

    def __init__(
        self,
        consumer: Callback | None = None,
        name: str = "journal",
        autostart: bool = True,
    ):
        self.name = name
        self._consumer = consumer

        self._queue: queue.Queue = queue.Queue()
        self._stop_event = threading.Event()

        # Replaced as a whole on subscribe(), the loop iterates a snapshot.
        self._subscriptions: tuple[Subscription, ...] = ()
        self._subscriptions_lock = threading.Lock()

        self._thread = threading.Thread(
            target=self._message_loop, name=f"{name}-dispatch", daemon=True
        )
        if autostart:
            self.start()

    @property
    def subscriptions(self) -> tuple[Subscription, ...]:
        return self._subscriptions

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    @property
    def pending(self) -> int:
        """Approximate number of messages waiting to be dispatched."""
        return self._queue.qsize()

    def start(self):
        if self._thread.is_alive() or self._stop_event.is_set():
            return
        self._thread.start()
        logger.debug(f"Broker '{self.name}' dispatch thread started.")

    def publish(self, topic: str, payload: Mapping[str, Any]) -> Message:
        """Enqueues a new message and returns it without waiting for delivery."""
        message = Message.create(topic, payload)
        if self._stop_event.is_set():
            logger.warning(
                f"Broker '{self.name}' is shutting down, message on '{topic}' may not be delivered."
            )
        self._queue.put(message)
        return message

    def subscribe(
        self, query: Query | Mapping[str, Any] | None, callback: Callback | None = None
    ) -> Subscription:
        """
        Registers a callback for every future message matching the query.

        Args:
            query: A Query, or a configuration mapping accepted by Query.define().
            callback: Called from the dispatch thread with each matching Message.
        """
        if callback is None or not callable(callback):
            raise InvalidSubscription("subscribe() requires a callable callback")
        if not isinstance(query, Query):
            query = Query.define(query)

        subscription = Subscription(query, callback)
        with self._subscriptions_lock:
            self._subscriptions = self._subscriptions + (subscription,)
        logger.debug(f"Broker '{self.name}' registered subscription: {query}")
        return subscription

    def shutdown(self):
        """Asks the dispatch loop to stop at its next safe point."""
        if self._stop_event.is_set():
            return
        logger.info(f"Shutting down broker '{self.name}'...")
        self._stop_event.set()
        self._queue.put(_SHUTDOWN)

    def join(self, timeout: float | None = None):
        """Blocks until the dispatch loop has terminated."""
        if self._thread.is_alive():
            self._thread.join(timeout)

    def flush(self):
        """
        Blocks until every message published so far has been dispatched,
        or until the dispatch loop stops.
        """
        if not self._thread.is_alive():
            logger.warning(f"Broker '{self.name}' is not running, nothing will be flushed.")
            return
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks and self._thread.is_alive():
                self._queue.all_tasks_done.wait(0.1)

    def __enter__(self) -> "JournalBroker":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        self.join()

    def _message_loop(self):
        """Continuously takes messages off the queue and delivers them."""
        while not self._stop_event.is_set():
            message = self._queue.get()
            try:
                if message is _SHUTDOWN or self._stop_event.is_set():
                    break
                self.consume(message)
            except Exception:
                logger.exception(f"An error occurred in the '{self.name}' dispatch loop.")
            finally:
                self._queue.task_done()

        self._discard_pending()
        logger.success(f"Broker '{self.name}' dispatch loop stopped.")

    def _discard_pending(self):
        """Marks messages left after a stop as done so flush() waiters are released."""
        discarded = 0
        while True:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                break
            self._queue.task_done()
            if message is not _SHUTDOWN:
                discarded += 1
        if discarded:
            logger.warning(f"Broker '{self.name}' discarded {discarded} undelivered messages.")

    def consume(self, message: Message):
        """Delivers a single message to the global consumer and matching subscribers."""
        if self._consumer is not None:
            self._invoke(self._consumer, message)

        for query, callback in self._subscriptions:
            if query.matches(message):
                self._invoke(callback, message)

    def _invoke(self, callback: Callback, message: Message):
        try:
            callback(message)
        except Exception:
            logger.exception(
                f"Callback {callback!r} failed for message {message.id} on topic '{message.topic}'."
            )
