"""
Tests for SSE Connection Registry

Tests the open-stream table including:
- Opening connections with unique ids
- Snapshot listing
- Closing disarms the schedule before dropping the record
"""

from unittest.mock import Mock

import pytest

from ssemock.mock.errors import SSEMockError
from ssemock.mock.registry import ConnectionRegistry, generate_connection_id
from ssemock.mock.sink import RecordingSink


class TestGenerateConnectionId:
    """Test connection id generation."""

    def test_format(self):
        """Test id is a millisecond timestamp plus random suffix."""
        connection_id = generate_connection_id()
        timestamp, suffix = connection_id.split('-')

        assert timestamp.isdigit()
        assert len(suffix) == 9

    def test_unique(self):
        """Test ids do not collide across many opens."""
        ids = {generate_connection_id() for _ in range(1000)}

        assert len(ids) == 1000


class TestConnectionRegistry:
    """Test ConnectionRegistry."""

    def test_open_and_get(self):
        """Test opening a connection stores its record."""
        registry = ConnectionRegistry()
        sink = RecordingSink()

        connection_id = registry.open('https://api/x', 'S1', sink)
        connection = registry.get(connection_id)

        assert connection.identity == 'https://api/x'
        assert connection.scenario == 'S1'
        assert connection.sink is sink
        assert connection.is_open
        assert connection_id in registry
        assert len(registry) == 1

    def test_open_without_scenario(self):
        """Test empty scenario is stored as None."""
        registry = ConnectionRegistry()

        connection_id = registry.open('https://api/x', '', RecordingSink())

        assert registry.get(connection_id).scenario is None

    def test_open_with_given_id(self):
        """Test an id handed out before registration is kept."""
        registry = ConnectionRegistry()

        connection_id = registry.open('https://api/x', None, RecordingSink(), connection_id='given-1')

        assert connection_id == 'given-1'
        assert 'given-1' in registry

    def test_open_duplicate_id(self):
        """Test registering a taken id fails and keeps the first record."""
        registry = ConnectionRegistry()
        first = RecordingSink()
        registry.open('https://api/x', None, first, connection_id='given-1')

        with pytest.raises(SSEMockError):
            registry.open('https://api/y', None, RecordingSink(), connection_id='given-1')

        assert registry.get('given-1').sink is first
        assert len(registry) == 1

    def test_get_unknown(self):
        """Test unknown ids return None."""
        assert ConnectionRegistry().get('nope') is None

    def test_list_snapshot(self):
        """Test listing returns display fields only."""
        registry = ConnectionRegistry()
        connection_id = registry.open('https://api/x', None, RecordingSink())

        listed = registry.list()

        assert listed == [{
            'id': connection_id,
            'url': 'https://api/x',
            'scenario': None,
            'createdAt': registry.get(connection_id).created_at.isoformat()
        }]

        # Mutating the snapshot does not touch the registry
        listed.clear()
        assert len(registry) == 1

    def test_close_disarms_then_removes(self):
        """Test close disarms the scheduler before dropping the record."""
        registry = ConnectionRegistry()
        sink = RecordingSink()
        connection_id = registry.open('https://api/x', None, sink)

        seen_during_disarm = []
        scheduler = Mock()
        scheduler.disarm.side_effect = lambda cid: seen_during_disarm.append(cid in registry)
        registry.scheduler = scheduler

        assert registry.close(connection_id) is True

        scheduler.disarm.assert_called_once_with(connection_id)
        assert seen_during_disarm == [True]
        assert sink.closed
        assert registry.get(connection_id) is None

    def test_close_unknown(self):
        """Test closing an unknown id is a no-op."""
        registry = ConnectionRegistry(scheduler=Mock())

        assert registry.close('nope') is False

    def test_find_by_identity_exact(self):
        """Test identity lookup uses exact string equality."""
        registry = ConnectionRegistry()
        first = registry.open('https://api/x', None, RecordingSink())
        registry.open('https://api/x?id=1', None, RecordingSink())

        found = registry.find_by_identity('https://api/x')

        assert [c.id for c in found] == [first]
