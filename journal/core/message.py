import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from .errors import InvalidMessage, PathNotFound

# Marks "no default supplied" so that None stays a valid default.
_MISSING = object()


def _freeze(value: Any) -> Any:
    """Copies nested mappings into read-only views and sequences into tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


@dataclass(frozen=True)
class Message:
    """
    Represents one published, immutable journal event.
    The payload is deep-copied into read-only views (lists become tuples)
    so subscribers sharing the same message cannot modify it.
    """

    topic: str
    payload: Mapping[str, Any]

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not isinstance(self.payload, Mapping):
            raise InvalidMessage(
                f"payload must be a mapping, got {type(self.payload).__name__}"
            )
        object.__setattr__(self, "payload", _freeze(self.payload))

    @classmethod
    def create(cls, topic: str, payload: Mapping[str, Any]) -> "Message":
        """Builds a message with a fresh id and the current UTC timestamp."""
        return cls(topic=topic, payload=payload)

    def get(self, path: str, default: Any = _MISSING) -> Any:
        """
        Resolves a dot-separated key path against the payload.

        Args:
            path: Keys separated by dots, eg: "user.name" for {"user": {"name": ...}}.
            default: Returned when a segment cannot be resolved. When omitted,
                     PathNotFound is raised instead.
        """
        value: Any = self.payload
        for segment in path.split("."):
            if isinstance(value, Mapping) and segment in value:
                value = value[segment]
                continue
            if default is _MISSING:
                raise PathNotFound(path, segment)
            return default
        return value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "timestamp": self.timestamp.isoformat(),
            "payload": _thaw(self.payload),
        }
