from abc import ABC, abstractmethod

from ..core.message import Message


class MessageMatcher(ABC):
    @abstractmethod
    def matches(self, message: Message) -> bool:
        """
        Determines whether a published message should be delivered.

        Args:
            message (Message): The message taken off the broker queue.

        Returns:
            True if the message satisfies this matcher.
        """
        raise NotImplementedError
