from abc import ABC, abstractmethod

from ..core.message import Message


class IConnectable(ABC):
    """Defines a contract for components that have a connect/stop lifecycle."""

    @abstractmethod
    def connect(self) -> bool:
        """Prepares the destination, returns False if it cannot be used."""
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        """Stops the component and cleans up resources."""
        raise NotImplementedError


class IDestination(IConnectable):
    """
    Defines a contract for anything that receives the stream of journal
    messages, eg: a searchable store or a logging sink.
    """

    @abstractmethod
    def write(self, message: Message) -> None:
        """Writes a single message. Raising signals a failed, retryable write."""
        raise NotImplementedError
