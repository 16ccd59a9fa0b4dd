import io
import threading

import pytest

from journal.routing.query import Query
from journal.sources.stream import StreamSource, parse_line


class TestParseLine:
    def test_json_payload(self):
        assert parse_line('log.irc {"action": "privmsg"}\n') == ("log.irc", {"action": "privmsg"})

    def test_yaml_flow_payload(self):
        topic, payload = parse_line('log.irc {action: privmsg, channel: "#rbot", n: 3}')

        assert topic == "log.irc"
        assert payload == {"action": "privmsg", "channel": "#rbot", "n": 3}

    def test_missing_payload_is_empty(self):
        assert parse_line("log.core") == ("log.core", {})
        assert parse_line("log.core   ") == ("log.core", {})

    @pytest.mark.parametrize("line", ["", "   \n", "# a comment"])
    def test_blank_and_comment_lines(self, line):
        assert parse_line(line) is None


class TestStreamSource:
    def test_publishes_each_line(self, broker, collector):
        received = collector(expected=2)
        broker.subscribe(Query(), received)
        stream = io.StringIO('log.irc {action: privmsg}\n\nlog.core {"level": 1}\n')

        StreamSource(stream).run(broker, threading.Event())
        broker.flush()

        assert [m.topic for m in received.messages] == ["log.irc", "log.core"]
        assert received.messages[1].get("level") == 1

    def test_skips_invalid_lines(self, broker, collector, log_records):
        received = collector()
        broker.subscribe(Query(), received)
        stream = io.StringIO("log.bad {unclosed\nlog.list [1, 2]\nlog.ok {}\n")

        StreamSource(stream).run(broker, threading.Event())
        broker.flush()

        assert [m.topic for m in received.messages] == ["log.ok"]
        errors = [r["message"] for r in log_records if r["level"].name == "ERROR"]
        assert len(errors) == 2
        assert errors[0].startswith("Line 1")
        assert errors[1].startswith("Line 2")

    def test_stops_when_event_is_set(self, broker, collector):
        received = collector()
        broker.subscribe(Query(), received)
        stop_event = threading.Event()
        stop_event.set()

        StreamSource(io.StringIO("log.core {}\n")).run(broker, stop_event)
        broker.flush()

        assert received.messages == []
