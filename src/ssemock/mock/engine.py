"""
SSE Mock Engine

Service object owning the connection registry, timeline scheduler, event
dispatcher and mock resolver for one server process.
"""

import asyncio
import logging
from typing import List, Dict, Any, Optional, Tuple

from ..common import IdentityMatcher
from .definition import MockDefinition
from .dispatcher import EventDispatcher, KEEP_ALIVE_FRAME
from .registry import ConnectionRegistry
from .resolver import MockResolver
from .scheduler import TimelineScheduler
from .store import MockStore


class MockEngine:
    """
    Mock resolution and scheduled delivery for open SSE streams.

    Construct one per server and hand it to the HTTP layer. All methods are
    short and non-blocking; call them from the event loop thread.

    Example:
        engine = MockEngine(MockStore('~/.mockingsse/mocks'))
        connection_id, definition = engine.open_stream(url, scenario, sink)
        ...
        engine.close_stream(connection_id)
    """

    def __init__(self, store: MockStore, loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize engine.

        Args:
            store: Mock store read on every resolution
            loop: Event loop for timers (defaults to the running loop)
        """
        self.store = store
        self.logger = logging.getLogger("ssemock.engine")

        self.registry = ConnectionRegistry()
        self.dispatcher = EventDispatcher(self.registry)
        self.scheduler = TimelineScheduler(self.dispatcher, loop=loop)
        self.registry.scheduler = self.scheduler
        self.resolver = MockResolver(store)

    def open_stream(
        self,
        identity: str,
        scenario: Optional[str],
        sink: Any,
        definition: Optional[MockDefinition] = None,
        connection_id: Optional[str] = None,
        resolve: bool = True
    ) -> Tuple[str, Optional[MockDefinition]]:
        """
        Register a stream, send the keep-alive comment and arm its mock.

        Args:
            identity: Requested identity
            scenario: Requested scenario, if any
            sink: Write handle for the stream
            definition: Already-resolved mock
            connection_id: Id already handed to the client (generated if None)
            resolve: Resolve a mock when ``definition`` is None

        Returns:
            (connection_id, armed definition or None)
        """
        if definition is None and resolve:
            definition = self.resolver.resolve(identity, scenario)

        connection_id = self.registry.open(identity, scenario, sink, connection_id=connection_id)
        sink.write(KEEP_ALIVE_FRAME)

        if definition is None:
            return connection_id, None

        valid = bool(definition.validate())
        self.scheduler.arm(connection_id, definition)
        return connection_id, definition if valid else None

    def close_stream(self, connection_id: str) -> bool:
        """Disarm and drop a stream."""
        return self.registry.close(connection_id)

    def start_mock_for_connection(self, connection_id: str, definition: MockDefinition) -> bool:
        """
        Arm a definition against one open connection.

        Returns:
            True if the connection exists and the definition was valid
        """
        if connection_id not in self.registry:
            self.logger.warning(f"Cannot start mock, connection not found: {connection_id}")
            return False
        # arm() clears the previous schedule even when the new mock is invalid
        valid = bool(definition.validate())
        self.scheduler.arm(connection_id, definition)
        return valid

    def connections_for_identity(self, identity: str, scenario: Optional[str] = None) -> List[str]:
        """
        Ids of connections a mock for this identity and scenario should drive.

        A connection qualifies when its identity equals ``identity`` or shares
        its base, and its scenario agrees (unset on either side, or equal).
        """
        target = str(identity)
        selected = []
        for connection in self.registry.connections():
            if not IdentityMatcher.matches(connection.identity, target):
                continue
            if scenario and connection.scenario and connection.scenario != str(scenario):
                continue
            selected.append(connection.id)
        return selected

    def start_mock_for_identity(
        self,
        identity: str,
        definition: MockDefinition,
        scenario: Optional[str] = None
    ) -> int:
        """
        Arm a definition against every connection matching an identity.

        Args:
            identity: Identity to match connections against
            definition: Mock to replay
            scenario: Scenario the connections must agree with
                (defaults to the definition's own scenario)

        Returns:
            Number of connections armed (0 if the definition is invalid)
        """
        validation = definition.validate()
        if not validation:
            self.logger.error(f"Invalid mock data for {definition.label}: {'; '.join(validation.errors)}")
            return 0

        effective_scenario = scenario or definition.scenario
        started_count = 0
        for connection_id in self.connections_for_identity(identity, effective_scenario):
            self.scheduler.arm(connection_id, definition)
            started_count += 1

        self.logger.info(f"Mock started for {started_count} connection(s) matching {identity}")
        return started_count

    def get_open_connections(self) -> List[Dict[str, Any]]:
        return self.registry.list()

    def shutdown(self):
        """Cancel every schedule and close every stream."""
        cancelled = self.scheduler.disarm_all()
        closed = 0
        for connection_id in self.registry.ids():
            if self.registry.close(connection_id):
                closed += 1
        self.logger.info(f"Engine shut down: {closed} connection(s) closed, {cancelled} timer(s) cancelled")
