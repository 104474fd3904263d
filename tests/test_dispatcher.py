"""
Tests for SSE Event Dispatcher

Tests frame formatting and delivery including:
- Response frames with embedded status codes
- Bare data frames for ad hoc pushes
- Identity and broadcast targeting with counts
- Tolerating missing and closed connections
"""

import json

from ssemock.mock.dispatcher import (
    EventDispatcher,
    format_data_frame,
    format_response_frame,
    KEEP_ALIVE_FRAME
)
from ssemock.mock.registry import ConnectionRegistry
from ssemock.mock.sink import RecordingSink


class BrokenSink(RecordingSink):
    """Sink whose writes fail."""

    def write(self, frame):
        raise BrokenPipeError('client went away')


def frame_body(frame):
    """Decode the JSON carried by a response frame."""
    lines = frame.rstrip('\n').split('\n')
    assert lines[0] == 'event: response'
    return json.loads(lines[1][len('data: '):])


class TestFrameFormatting:
    """Test protocol frame formatting."""

    def test_response_frame(self):
        """Test scheduled delivery frame layout."""
        frame = format_response_frame({'ok': True}, 200)

        assert frame == 'event: response\ndata: {"statusCode": 200, "body": {"ok": true}}\n\n'

    def test_response_frame_status(self):
        """Test status code is embedded."""
        assert frame_body(format_response_frame('down', 503)) == {'statusCode': 503, 'body': 'down'}

    def test_data_frame_json(self):
        """Test structured payloads are JSON encoded."""
        assert format_data_frame({'a': 1}) == 'data: {"a": 1}\n\n'

    def test_data_frame_string(self):
        """Test string payloads are written verbatim."""
        assert format_data_frame('hello') == 'data: hello\n\n'

    def test_keep_alive_frame(self):
        """Test keep-alive is an SSE comment."""
        assert KEEP_ALIVE_FRAME == ': keep-alive\n\n'


class TestEventDispatcher:
    """Test EventDispatcher."""

    def setup_method(self):
        self.registry = ConnectionRegistry()
        self.dispatcher = EventDispatcher(self.registry)

    def test_send_to(self):
        """Test delivering a response frame to one connection."""
        sink = RecordingSink()
        connection_id = self.registry.open('https://api/x', None, sink)

        assert self.dispatcher.send_to(connection_id, {'ok': True}, 201) is True
        assert frame_body(sink.frames[0]) == {'statusCode': 201, 'body': {'ok': True}}

    def test_send_to_default_status(self):
        """Test status code defaults to 200."""
        sink = RecordingSink()
        connection_id = self.registry.open('https://api/x', None, sink)

        self.dispatcher.send_to(connection_id, [1, 2])

        assert frame_body(sink.frames[0])['statusCode'] == 200

    def test_send_to_missing_connection(self, caplog):
        """Test missing connection is a logged no-op."""
        assert self.dispatcher.send_to('gone', {'ok': True}) is False
        assert 'Connection not found: gone' in caplog.text

    def test_send_to_closed_sink(self):
        """Test closed sink is a no-op."""
        sink = RecordingSink()
        connection_id = self.registry.open('https://api/x', None, sink)
        sink.close()

        assert self.dispatcher.send_to(connection_id, {'ok': True}) is False
        assert sink.frames == []

    def test_send_raw(self):
        """Test ad hoc push to one connection uses a bare frame."""
        sink = RecordingSink()
        connection_id = self.registry.open('https://api/x', None, sink)

        self.dispatcher.send_raw(connection_id, {'a': 1})

        assert sink.frames == ['data: {"a": 1}\n\n']

    def test_send_to_identity_exact_only(self):
        """Test identity push targets exact string matches only."""
        exact_one, exact_two, other = RecordingSink(), RecordingSink(), RecordingSink()
        self.registry.open('https://api/x', None, exact_one)
        self.registry.open('https://api/x', 'S1', exact_two)
        self.registry.open('https://api/x?id=1', None, other)

        sent = self.dispatcher.send_to_identity('https://api/x', 'ping')

        assert sent == 2
        assert exact_one.frames == ['data: ping\n\n']
        assert exact_two.frames == ['data: ping\n\n']
        assert other.frames == []

    def test_send_to_all(self):
        """Test broadcast reaches every open connection."""
        sinks = [RecordingSink() for _ in range(3)]
        for index, sink in enumerate(sinks):
            self.registry.open(f"channel-{index}", None, sink)
        sinks[2].close()

        sent = self.dispatcher.send_to_all({'n': 1})

        assert sent == 2
        assert sinks[0].frames == ['data: {"n": 1}\n\n']
        assert sinks[2].frames == []

    def test_broadcast_survives_broken_sink(self):
        """Test one failing sink does not stop a broadcast."""
        good = RecordingSink()
        self.registry.open('a', None, BrokenSink())
        self.registry.open('b', None, good)

        assert self.dispatcher.send_to_all('x') == 1
        assert good.frames == ['data: x\n\n']

    def test_keep_alive(self):
        """Test keep-alive comment delivery."""
        sink = RecordingSink()
        connection_id = self.registry.open('a', None, sink)

        self.dispatcher.keep_alive(connection_id)

        assert sink.frames == [KEEP_ALIVE_FRAME]
