from loguru import logger
from tenacity import RetryError, Retrying, stop_after_attempt, wait_exponential

from ..core.message import Message
from .interfaces import IDestination


class DestinationCallback:
    """
    Adapts a destination into a broker callback. Failed writes are retried
    with exponential backoff, exhausted retries are logged and the message
    is dropped.
    """

    def __init__(
        self,
        destination: IDestination,
        retry_attempts: int = 3,
        retry_multiplier: float = 1.0,
        retry_max_wait: float = 10.0,
    ):
        self.destination = destination
        self.retrier = Retrying(
            stop=stop_after_attempt(retry_attempts),
            wait=wait_exponential(multiplier=retry_multiplier, min=0, max=retry_max_wait),
        )

    @classmethod
    def from_config(cls, destination: IDestination, config: dict) -> "DestinationCallback":
        return cls(
            destination,
            retry_attempts=config.get("retry_attempts", 3),
            retry_multiplier=config.get("retry_multiplier", 1.0),
            retry_max_wait=config.get("retry_max_wait", 10.0),
        )

    def _write(self, message: Message):
        try:
            self.destination.write(message)
        except Exception as e:
            logger.warning(
                f"Failed to write message {message.id} to {self.destination.__class__.__name__}. "
                f"Error: {e.__class__.__name__}. Retrying..."
            )
            raise

    def __call__(self, message: Message) -> None:
        try:
            self.retrier(self._write, message)
        except RetryError as e:
            logger.critical(
                f"Max retries exceeded writing message {message.id} on topic '{message.topic}' "
                f"to {self.destination.__class__.__name__}. Final error: {e}. Message dropped."
            )

    def __repr__(self) -> str:
        return f"DestinationCallback({self.destination.__class__.__name__})"
