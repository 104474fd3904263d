"""
SSE Mock Server Module

Server-Sent Events mock server replaying recorded event timelines.

This module provides:
- FastAPI-based SSE server and admin API
- Mock resolution by identity, query policy and scenario
- Connection registry and per-connection timeline scheduling
- Event dispatch to one connection, one identity or all connections
"""

from .server import SSEMockServer, ServerConfig, create_sse_server
from .engine import MockEngine
from .definition import MockDefinition, TimelineEntry, ValidationResult
from .dispatcher import EventDispatcher, format_response_frame, format_data_frame, KEEP_ALIVE_FRAME
from .errors import SSEMockError, MockDefinitionError, MockNotFoundError
from .registry import ConnectionRegistry, Connection
from .resolver import MockResolver, ResolveResult
from .scheduler import TimelineScheduler
from .sink import QueueSink, RecordingSink
from .store import MockStore

__all__ = [
    # Server
    'SSEMockServer',
    'ServerConfig',
    'create_sse_server',

    # Engine
    'MockEngine',
    'MockResolver',
    'ResolveResult',
    'ConnectionRegistry',
    'Connection',
    'TimelineScheduler',
    'EventDispatcher',
    'format_response_frame',
    'format_data_frame',
    'KEEP_ALIVE_FRAME',

    # Definitions and storage
    'MockDefinition',
    'TimelineEntry',
    'ValidationResult',
    'MockStore',

    # Sinks
    'QueueSink',
    'RecordingSink',

    # Errors
    'SSEMockError',
    'MockDefinitionError',
    'MockNotFoundError',
]

__version__ = '1.0.0'
