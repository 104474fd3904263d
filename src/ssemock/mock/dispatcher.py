"""
SSE Event Dispatcher

Formats protocol frames and writes them to one connection, every
connection sharing an identity, or every open connection.

Frame formats:
- Scheduled mock delivery: ``event: response`` with a JSON body of
  ``{"statusCode": <n>, "body": <payload>}``
- Ad hoc push: bare ``data: <payload>``
- Keep-alive: ``: keep-alive`` comment
"""

import json
import logging
from typing import Any, Iterable

from ..common import serialize_payload
from .registry import Connection, ConnectionRegistry


KEEP_ALIVE_FRAME = ': keep-alive\n\n'


def format_response_frame(payload: Any, status_code: int = 200) -> str:
    """Frame for a scheduled mock delivery."""
    body = json.dumps({'statusCode': status_code, 'body': payload})
    return f"event: response\ndata: {body}\n\n"


def format_data_frame(payload: Any) -> str:
    """Frame for an ad hoc push."""
    return f"data: {serialize_payload(payload)}\n\n"


class EventDispatcher:
    """
    Writes frames to connections looked up in the registry.

    Lookups happen at send time, so a delivery that fires after its
    connection closed is dropped with a warning instead of raising.
    """

    def __init__(self, registry: ConnectionRegistry):
        """
        Initialize dispatcher.

        Args:
            registry: Registry used to resolve connection ids
        """
        self.registry = registry
        self.logger = logging.getLogger("ssemock.dispatcher")

    def _write(self, connection: Connection, frame: str) -> bool:
        try:
            written = connection.sink.write(frame)
        except Exception as e:
            self.logger.error(f"Error sending event to connection {connection.id}: {e}")
            return False

        if not written:
            self.logger.warning(f"Connection closed, event dropped: {connection.id}")
        return written

    def _write_to_open(self, connection_id: str, frame: str) -> bool:
        connection = self.registry.get(connection_id)
        if connection is None or not connection.is_open:
            self.logger.warning(f"Connection not found: {connection_id}")
            return False
        return self._write(connection, frame)

    def send_to(self, connection_id: str, payload: Any, status_code: int = 200) -> bool:
        """
        Deliver a mock response frame to one connection.

        Args:
            connection_id: Target connection
            payload: Payload to embed as the frame's body
            status_code: Status code to embed

        Returns:
            True if the frame was written
        """
        sent = self._write_to_open(connection_id, format_response_frame(payload, status_code))
        if sent:
            self.logger.debug(f"Event sent to connection: {connection_id}")
        return sent

    def send_raw(self, connection_id: str, payload: Any) -> bool:
        """Push a bare data frame to one connection."""
        return self._write_to_open(connection_id, format_data_frame(payload))

    def keep_alive(self, connection_id: str) -> bool:
        """Write a keep-alive comment to one connection."""
        return self._write_to_open(connection_id, KEEP_ALIVE_FRAME)

    def _broadcast(self, connections: Iterable[Connection], payload: Any) -> int:
        frame = format_data_frame(payload)
        sent_count = 0
        for connection in connections:
            if connection.is_open and self._write(connection, frame):
                sent_count += 1
        return sent_count

    def send_to_identity(self, identity: str, payload: Any) -> int:
        """
        Push a bare data frame to every connection with exactly this identity.

        Returns:
            Number of connections written
        """
        sent_count = self._broadcast(self.registry.find_by_identity(identity), payload)
        self.logger.info(f"Event sent to {sent_count} connection(s) for URL: {identity}")
        return sent_count

    def send_to_all(self, payload: Any) -> int:
        """
        Push a bare data frame to every open connection.

        Returns:
            Number of connections written
        """
        sent_count = self._broadcast(self.registry.connections(), payload)
        self.logger.info(f"Event sent to all {sent_count} connection(s)")
        return sent_count
