"""
SSE Timeline Scheduler

Turns a mock definition's timeline into one-shot timers bound to a
connection id. Timers are event-loop handles (``loop.call_later``); nothing
blocks while waiting.

Arming a connection replaces its previous schedule, and closing a
connection disarms it. A timer that was already running when ``disarm``
was called may still complete; its send is dropped if the connection is
gone by then.
"""

import asyncio
import itertools
import logging
from typing import Dict, Any, List, Optional

from .definition import MockDefinition


class TimelineScheduler:
    """
    Schedules mock deliveries per connection.

    Deliveries carry the connection id, never the sink, so the dispatcher
    re-resolves the live connection when a timer fires.

    Example:
        scheduler = TimelineScheduler(dispatcher)
        scheduler.arm(connection_id, definition)   # from inside the event loop
        ...
        scheduler.disarm(connection_id)
    """

    def __init__(self, dispatcher: Any, loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize scheduler.

        Args:
            dispatcher: Object exposing ``send_to(connection_id, payload, status_code)``
            loop: Event loop for timers (defaults to the running loop at arm time)
        """
        self.dispatcher = dispatcher
        self.loop = loop
        self.logger = logging.getLogger("ssemock.scheduler")
        self._pending: Dict[str, Dict[int, asyncio.TimerHandle]] = {}
        self._tokens = itertools.count()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self.loop is not None:
            return self.loop
        return asyncio.get_running_loop()

    def arm(self, connection_id: str, definition: MockDefinition) -> int:
        """
        Replace the connection's schedule with the definition's timeline.

        Args:
            connection_id: Target connection
            definition: Mock to replay

        Returns:
            Number of deliveries scheduled (0 if the definition is invalid)

        Raises:
            RuntimeError: If no loop was given and none is running
        """
        self.disarm(connection_id)

        validation = definition.validate()
        if not validation:
            self.logger.error(
                f"Invalid mock data format for connection {connection_id}: {'; '.join(validation.errors)}"
            )
            return 0

        loop = self._get_loop()
        handles: Dict[int, asyncio.TimerHandle] = {}

        for entry in definition.timeline:
            token = next(self._tokens)
            handles[token] = loop.call_later(
                entry.offset_ms / 1000,
                self._fire,
                connection_id,
                token,
                definition.payloads[entry.payload_index],
                entry.status_code,
                entry.offset_ms,
                entry.payload_index
            )

        if handles:
            self._pending[connection_id] = handles

        self.logger.info(
            f"Mock started for connection {connection_id} with {len(handles)} scheduled events"
        )
        return len(handles)

    def _fire(
        self,
        connection_id: str,
        token: int,
        payload: Any,
        status_code: int,
        offset_ms: int,
        payload_index: int
    ):
        handles = self._pending.get(connection_id)
        if handles is not None:
            handles.pop(token, None)
            if not handles:
                del self._pending[connection_id]

        if self.dispatcher.send_to(connection_id, payload, status_code):
            self.logger.info(
                f"Mock event sent to connection {connection_id} at {offset_ms}ms (response index: {payload_index})"
            )

    def disarm(self, connection_id: str) -> int:
        """
        Cancel the connection's pending deliveries. Safe when none exist.

        Returns:
            Number of timers cancelled
        """
        handles = self._pending.pop(connection_id, None)
        if not handles:
            return 0

        for handle in handles.values():
            handle.cancel()

        self.logger.info(f"Mock timers cleared for connection: {connection_id}")
        return len(handles)

    def disarm_all(self) -> int:
        """Cancel every pending delivery."""
        return sum(self.disarm(connection_id) for connection_id in list(self._pending))

    def pending(self, connection_id: str) -> int:
        """Number of deliveries still scheduled for a connection."""
        return len(self._pending.get(connection_id, {}))

    def armed_connections(self) -> List[str]:
        return list(self._pending)
