from threading import Event
from typing import TextIO

import yaml
from loguru import logger

from ..broker import JournalBroker
from ..core.errors import InvalidMessage
from .interfaces import ISource


def parse_line(line: str) -> tuple[str, dict] | None:
    """
    Splits "<topic> <payload>" into its parts, the payload being YAML or JSON
    flow mapping text, eg: log.irc {action: privmsg, channel: "#rbot"}.
    Returns None for blank lines and comments.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    topic, _, raw_payload = line.partition(" ")
    payload = yaml.safe_load(raw_payload) if raw_payload.strip() else {}
    if payload is None:
        payload = {}
    return topic, payload


class StreamSource(ISource):
    """
    Message source reading one message per line from a text stream.
    """

    def __init__(self, stream: TextIO):
        self.stream = stream

    def run(self, broker: JournalBroker, stop_event: Event) -> None:
        published = 0
        for number, line in enumerate(self.stream, start=1):
            if stop_event.is_set():
                logger.info("Stream source received stop signal.")
                break

            try:
                parsed = parse_line(line)
            except yaml.YAMLError as e:
                logger.error(f"Line {number}: payload is not valid YAML/JSON. Skipping. Error: {e}")
                continue
            if parsed is None:
                continue

            topic, payload = parsed
            try:
                broker.publish(topic, payload)
            except InvalidMessage as e:
                logger.error(f"Line {number}: {e}. Skipping.")
                continue
            published += 1

        logger.info(f"Stream source has stopped after publishing {published} messages.")
