from abc import ABC, abstractmethod
from threading import Event

from ..broker import JournalBroker


class ISource(ABC):
    """
    Defines the contract for anything that feeds messages into a broker
    until it runs out of input or is asked to stop.
    """

    @abstractmethod
    def run(self, broker: JournalBroker, stop_event: Event) -> None:
        """
        Publishes messages into the broker.

        Args:
            broker: The broker receiving the published messages.
            stop_event: Set when the source should return early.
        """
        raise NotImplementedError
