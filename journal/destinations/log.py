from loguru import logger

from ..core.message import Message
from .interfaces import IDestination


class LogDestination(IDestination):
    """
    Writes every received message to the application log.
    """

    def __init__(self, config: dict):
        self.config = config
        self.level = str(config.get("level", "INFO")).upper()
        self._logger = logger.bind(destination=config.get("id", "log"))
        self._connected = False

    def connect(self) -> bool:
        try:
            # Fails early on an unknown level instead of on the first message.
            logger.level(self.level)
        except ValueError:
            logger.critical(f"Log destination has an unknown level '{self.level}'.")
            return False
        self._connected = True
        logger.debug(f"Log destination ready at level {self.level}.")
        return True

    def write(self, message: Message) -> None:
        if not self._connected:
            raise ConnectionError("Log destination is not connected.")
        self._logger.log(self.level, f"[{message.topic}] {message.to_dict()}")

    def stop(self) -> None:
        self._connected = False
        logger.debug("Log destination stopped.")
