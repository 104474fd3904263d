"""
SSE Connection Registry

In-memory table of open streams, keyed by a generated connection id.
"""

import logging
import threading
import time
import uuid
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime

from .errors import SSEMockError


def generate_connection_id() -> str:
    """Millisecond timestamp plus a random suffix."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass
class Connection:
    """One open push stream."""

    id: str
    identity: str
    sink: Any
    scenario: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_open(self) -> bool:
        return self.sink is not None and not self.sink.closed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'id': self.id,
            'url': self.identity,
            'scenario': self.scenario,
            'createdAt': self.created_at.isoformat()
        }


class ConnectionRegistry:
    """
    Owns the table of open connections.

    Every method holds the lock only for the table access itself; closing a
    sink and disarming its schedule happen outside the critical section.

    Example:
        registry = ConnectionRegistry()
        connection_id = registry.open('https://api.example.com/feed', None, sink)
        ...
        registry.close(connection_id)
    """

    def __init__(self, scheduler: Optional[Any] = None):
        """
        Initialize registry.

        Args:
            scheduler: Scheduler disarmed on close (may be attached later)
        """
        self.scheduler = scheduler
        self.logger = logging.getLogger("ssemock.registry")
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()

    def open(
        self,
        identity: str,
        scenario: Optional[str],
        sink: Any,
        connection_id: Optional[str] = None
    ) -> str:
        """
        Register a new stream.

        Args:
            identity: Requested identity, fixed for the connection's lifetime
            scenario: Requested scenario, if any
            sink: Live write handle for the stream
            connection_id: Id handed out before registration (generated if None)

        Returns:
            New connection id

        Raises:
            SSEMockError: If the given connection id is already registered
        """
        connection = Connection(
            id=connection_id or generate_connection_id(),
            identity=str(identity),
            scenario=str(scenario) if scenario else None,
            sink=sink
        )
        with self._lock:
            if connection_id and connection_id in self._connections:
                raise SSEMockError(f"Connection already registered: {connection_id}")
            while connection.id in self._connections:
                connection.id = generate_connection_id()
            self._connections[connection.id] = connection

        scenario_info = f" with scenario: {connection.scenario}" if connection.scenario else ""
        self.logger.info(f"Connection opened: {connection.id} for URL: {connection.identity}{scenario_info}")
        return connection.id

    def close(self, connection_id: str) -> bool:
        """
        Disarm the connection's schedule, close its sink and drop the record.

        Returns:
            True if the connection existed
        """
        if self.scheduler is not None:
            self.scheduler.disarm(connection_id)

        with self._lock:
            connection = self._connections.pop(connection_id, None)

        if connection is None:
            return False

        connection.sink.close()
        self.logger.info(f"Connection closed: {connection_id}")
        return True

    def get(self, connection_id: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(connection_id)

    def list(self) -> List[Dict[str, Any]]:
        """Snapshot of open connections."""
        with self._lock:
            connections = list(self._connections.values())
        return [c.to_dict() for c in connections]

    def connections(self) -> List[Connection]:
        """Snapshot of connection records."""
        with self._lock:
            return list(self._connections.values())

    def find_by_identity(self, identity: str) -> List[Connection]:
        """Connections whose identity string-equals the argument."""
        target = str(identity)
        return [c for c in self.connections() if c.identity == target]

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._connections)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._connections
