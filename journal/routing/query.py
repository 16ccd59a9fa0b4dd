from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from types import MappingProxyType
from typing import Any

from loguru import logger

from ..core.errors import InvalidQuery, PathNotFound
from ..core.message import Message
from .interfaces import MessageMatcher
from .topic import topic_matches

QUERY_KEYS = ("id", "topic", "timestamp", "payload")
RANGE_KEYS = ("from", "to")


def _to_datetime(value: Any, bound: str) -> datetime | None:
    """
    Normalizes a range bound into an aware UTC datetime. Naive values are local
    time, like datetime.now(). A date spans the whole day, so it starts a "from"
    bound at midnight and ends a "to" bound at the last instant of the day.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        moment = time.max if bound == "to" else time.min
        return datetime.combine(value, moment).astimezone(timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise InvalidQuery(f"timestamp '{bound}' is not ISO-8601: {value!r}") from e
        return _to_datetime(parsed, bound)
    raise InvalidQuery(
        f"timestamp '{bound}' must be a datetime, ISO string or epoch seconds, "
        f"got {type(value).__name__}"
    )


def _to_strings(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise InvalidQuery(f"query '{key}' must be a string or a list of strings")


@dataclass(frozen=True)
class TimestampRange:
    """Inclusive time window, either bound may be left open."""

    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def from_mapping(cls, bounds: Mapping[str, Any] | None) -> "TimestampRange":
        if bounds is None:
            return cls()
        if isinstance(bounds, TimestampRange):
            return bounds
        if not isinstance(bounds, Mapping):
            raise InvalidQuery("query 'timestamp' must be a mapping with 'from'/'to'")
        unknown = set(bounds) - set(RANGE_KEYS)
        if unknown:
            raise InvalidQuery(f"unknown timestamp bounds: {sorted(unknown)}")
        return cls(
            start=_to_datetime(bounds.get("from"), "from"),
            end=_to_datetime(bounds.get("to"), "to"),
        )

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


@dataclass(frozen=True)
class Query(MessageMatcher):
    """
    Declarative predicate over message id, topic, timestamp and payload.
    Every field defaults to "no constraint", so Query() matches everything.

    Queries are declared from a configuration mapping:

        Query.define({
            "id": ["foo", "bar"],
            "topic": ["log.irc.*", "log.core"],
            "timestamp": {"from": start, "to": end},
            "payload": {"action": "privmsg", "channel": "#rbot"},
        })

    or fluently through QueryBuilder, which fills the same mapping.
    """

    ids: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
    timestamp: TimestampRange = field(default_factory=TimestampRange)
    payload: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def define(cls, config: Mapping[str, Any] | None = None) -> "Query":
        if config is None:
            return cls()
        if not isinstance(config, Mapping):
            raise InvalidQuery(f"query config must be a mapping, got {type(config).__name__}")

        unknown = set(config) - set(QUERY_KEYS)
        if unknown:
            raise InvalidQuery(f"unknown query keys: {sorted(unknown)}")

        payload = config.get("payload") or {}
        if not isinstance(payload, Mapping):
            raise InvalidQuery("query 'payload' must be a mapping of key paths to values")

        return cls(
            ids=_to_strings(config.get("id"), "id"),
            topics=_to_strings(config.get("topic"), "topic"),
            timestamp=TimestampRange.from_mapping(config.get("timestamp")),
            payload=MappingProxyType({str(k): v for k, v in payload.items()}),
        )

    def matches(self, message: Message) -> bool:
        if self.ids and message.id not in self.ids:
            return False
        if self.topics and not self.matches_topic(message.topic):
            return False
        if not self.timestamp.contains(message.timestamp):
            return False

        # Only the lookup runs, expected values are not compared.
        # TODO: compare looked-up values with the expected ones so payload filters narrow matches.
        for path in self.payload:
            try:
                message.get(path)
            except PathNotFound:
                logger.trace(f"Payload path '{path}' missing in message {message.id}")
        return True

    def matches_topic(self, topic: str) -> bool:
        return any(topic_matches(pattern, topic) for pattern in self.topics)


class QueryBuilder:
    """
    Fluent construction of a Query. Each call accumulates into the
    configuration mapping that Query.define() also accepts.

        query = QueryBuilder().topic("log.irc.*").payload({"action": "privmsg"}).build()
    """

    def __init__(self):
        self.config: dict[str, Any] = {
            "id": [],
            "topic": [],
            "timestamp": {"from": None, "to": None},
            "payload": {},
        }

    def id(self, *ids: str) -> "QueryBuilder":
        self.config["id"].extend(ids)
        return self

    def topic(self, *patterns: str) -> "QueryBuilder":
        self.config["topic"].extend(patterns)
        return self

    def timestamp(self, bounds: Mapping[str, Any]) -> "QueryBuilder":
        self.config["timestamp"] = dict(bounds)
        return self

    def payload(self, entries: Mapping[str, Any] | None = None, **kwargs: Any) -> "QueryBuilder":
        self.config["payload"].update(entries or {}, **kwargs)
        return self

    def build(self) -> Query:
        return Query.define(self.config)
