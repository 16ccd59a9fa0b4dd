import sys
import os
import yaml
import argparse
import threading
from loguru import logger

from .broker import JournalBroker
from .core.errors import InvalidQuery
from .destinations.callback import DestinationCallback
from .destinations.interfaces import IDestination
from .destinations.log import LogDestination
from .sources.stream import StreamSource

DESTINATION_FACTORIES = {"log": LogDestination}


def create_parser():
    parser = argparse.ArgumentParser(
        description="Journal publish/subscribe broker",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        type=str,
        default="./config.yaml",
        metavar="FILE",
        help="YAML config file",
    )
    parser.add_argument(
        "--input",
        type=str,
        default="-",
        metavar="FILE",
        help="File with one '<topic> <payload>' message per line, '-' for stdin",
    )

    return parser


def load_config(path: str) -> dict:
    config_path = os.path.join(os.getcwd(), path)

    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}
            logger.info("Config loaded succesfully.")
            return config
    except FileNotFoundError:
        logger.critical(f"Config file not found in '{config_path}'")
        sys.exit(1)
    except yaml.YAMLError as e:
        logger.critical(f"Syntax error in YAML file '{config_path}': {e}")
        sys.exit(1)


def open_input(path: str):
    if path == "-":
        return sys.stdin

    try:
        return open(path, "r")
    except OSError as e:
        logger.critical(f"Cannot open input file '{path}': {e}")
        sys.exit(1)


def create_destinations(config: dict) -> dict[str, IDestination]:
    destinations = {}
    for name, dest_config in (config.get("destinations") or {}).items():
        if not dest_config.get("enabled", True):
            continue
        dest_type = dest_config.get("type", name)
        if dest_type not in DESTINATION_FACTORIES:
            logger.warning(f"Unknown destination type '{dest_type}' in config.")
            continue
        dest_config["id"] = name
        destinations[name] = DESTINATION_FACTORIES[dest_type](dest_config)
        logger.debug(f"Destination '{name}' created.")
    return destinations


def build_broker(config: dict, destinations: dict[str, IDestination]) -> JournalBroker:
    """Creates the broker with its global consumer and configured subscriptions."""
    dest_configs = config.get("destinations") or {}

    def callback_for(name: str) -> DestinationCallback:
        return DestinationCallback.from_config(destinations[name], dest_configs.get(name) or {})

    consumer = None
    consumer_name = config.get("consumer")
    if consumer_name:
        if consumer_name in destinations:
            consumer = callback_for(consumer_name)
            logger.info(f"Global consumer set to destination '{consumer_name}'.")
        else:
            logger.error(f"Consumer destination '{consumer_name}' is not configured or enabled.")

    broker = JournalBroker(consumer=consumer, name=config.get("name", "journal"))

    for sub_config in config.get("subscriptions") or []:
        sub_name = sub_config.get("name", "unnamed")
        dest_name = sub_config.get("destination")
        if dest_name not in destinations:
            logger.error(
                f"Skipping subscription '{sub_name}': "
                f"Destination '{dest_name}' is not configured or enabled."
            )
            continue
        try:
            broker.subscribe(sub_config.get("query") or {}, callback_for(dest_name))
        except InvalidQuery as e:
            logger.error(f"Skipping subscription '{sub_name}': {e}")
            continue
        logger.success(f"Subscription configured: {sub_name} -> {dest_name}")

    return broker


def main(argv: list[str] | None = None):
    parser = create_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config)

    log_level = (config.get("logging") or {}).get("level", "INFO").upper()
    logger.remove()
    logger.add(sys.stderr, level=log_level, colorize=True)
    logger.info(f"Logger level set to: {log_level}")

    stream = open_input(args.input)

    destinations = create_destinations(config)
    for name, dest in list(destinations.items()):
        if not dest.connect():
            logger.error(f"Destination '{name}' could not connect. It will be ignored.")
            del destinations[name]

    broker = build_broker(config, destinations)
    stop_event = threading.Event()

    try:
        StreamSource(stream).run(broker, stop_event)
        broker.flush()
    except KeyboardInterrupt:
        logger.info("Keyboard interruption detected. Shutting down...")
        stop_event.set()
    finally:
        if stream is not sys.stdin:
            stream.close()
        broker.shutdown()
        broker.join()
        for dest in destinations.values():
            dest.stop()
        logger.success("Journal shut down successfully.")


if __name__ == "__main__":
    main()
