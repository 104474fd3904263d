"""
SSE Stream Sinks

A sink is the write side of one open stream. Writers never block: frames
are queued and the stream's response generator drains them onto the wire.
"""

import asyncio
from typing import List, Optional


class QueueSink:
    """
    Sink backed by an asyncio queue.

    Becomes invalid exactly once, at ``close()``; writes after that are
    refused.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, frame: str) -> bool:
        """Queue a frame. Returns False if the sink is closed."""
        if self._closed:
            return False
        self._queue.put_nowait(frame)
        return True

    def close(self):
        """Invalidate the sink and wake the reader."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Wait for the next frame.

        Args:
            timeout: Seconds to wait (None waits forever)

        Returns:
            Next frame, or None once the sink is closed

        Raises:
            asyncio.TimeoutError: If no frame arrives within timeout
        """
        if timeout:
            return await asyncio.wait_for(self._queue.get(), timeout)
        return await self._queue.get()


class RecordingSink:
    """Sink that keeps every frame in memory, for tests and tooling."""

    def __init__(self):
        self.frames: List[str] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, frame: str) -> bool:
        if self._closed:
            return False
        self.frames.append(frame)
        return True

    def close(self):
        self._closed = True
