"""
SSE Mock Server

FastAPI-based Server-Sent Events server that replays stored mock timelines.

Features:
- Stream identity and scenario taken from request headers
- Mock resolution against the on-disk mock library
- Timed delivery of recorded events per connection
- Ad hoc event push to one connection, one identity or everyone
- Admin API for mock CRUD and starting mocks on open connections
"""

from __future__ import annotations  # Enable forward references for type hints

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

import yaml
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from ..common import resolve_mock_folder
from .definition import MockDefinition
from .engine import MockEngine
from .errors import MockDefinitionError, MockNotFoundError
from .registry import generate_connection_id
from .sink import QueueSink
from .store import MockStore


CONNECTION_ID_HEADER = 'X-SSE-Connection-Id'


@dataclass
class ServerConfig:
    """Configuration for the SSE mock server."""

    # Server options
    host: str = "127.0.0.1"
    port: int = 8009
    log_level: str = "info"

    # Mock library
    mock_folder: Optional[str] = None  # None = environment or ~/.mockingsse/mocks
    default_domain: str = "Dev"

    # Stream request headers (first present wins)
    identity_headers: Tuple[str, ...] = ('x-sse-url', 'url', 'sse-url')
    scenario_headers: Tuple[str, ...] = ('scenario', 'x-scenario')

    # Seconds between keep-alive comments after the initial one (0 = never)
    heartbeat_interval: float = 15.0

    cors_enabled: bool = True

    # Admin API
    admin_enabled: bool = True
    admin_prefix: str = "/api"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServerConfig':
        """Create config from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in (data or {}).items() if k in known}
        for key in ('identity_headers', 'scenario_headers'):
            if key in values:
                values[key] = tuple(str(h).lower() for h in values[key])
        return cls(**values)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'ServerConfig':
        """Load config from YAML file."""
        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})


class SSEMockServer:
    """
    FastAPI-based SSE mock server.

    Example:
        # Serve mocks from the default folder
        server = SSEMockServer()
        server.start(port=8009)

        # Custom folder and no periodic keep-alives
        config = ServerConfig(mock_folder='./mocks', heartbeat_interval=0)
        server = SSEMockServer(config=config)
        server.start()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        store: Optional[MockStore] = None,
        engine: Optional[MockEngine] = None
    ):
        """
        Initialize SSE mock server.

        Args:
            config: Optional ServerConfig for server behavior
            store: Optional MockStore instance (will create if None)
            engine: Optional MockEngine instance (will create if None)
        """
        self.config = config or ServerConfig()

        self.logger = logging.getLogger("ssemock.server")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))

        self.store = store or MockStore(
            resolve_mock_folder(self.config.mock_folder),
            default_domain=self.config.default_domain
        )
        self.store.ensure_layout()
        self.engine = engine or MockEngine(self.store)

        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            yield
            self.engine.shutdown()

        app = FastAPI(
            title="SSE Mock Server",
            description="Server-Sent Events mock server replaying recorded timelines",
            version="1.0.0",
            lifespan=lifespan
        )

        if self.config.cors_enabled:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["*"],
                allow_headers=["Cache-Control", *self.config.identity_headers, *self.config.scenario_headers],
                expose_headers=[CONNECTION_ID_HEADER]
            )

        @app.get("/sse")
        async def open_stream(request: Request):
            """Open an SSE stream for the identity named in the request headers."""
            return self._handle_stream(request)

        @app.post("/sse/event")
        async def push_event(request: Request):
            """Push an ad hoc event to one connection, one URL, or everyone."""
            body, error = await self._read_json(request)
            if error:
                return error

            connection_id = body.get('connectionId')
            target_url = body.get('url')
            data = body.get('data')

            if connection_id:
                sent = 1 if self.engine.dispatcher.send_raw(connection_id, data) else 0
            elif target_url:
                sent = self.engine.dispatcher.send_to_identity(target_url, data)
            else:
                sent = self.engine.dispatcher.send_to_all(data)

            return JSONResponse(content={'success': True, 'sent': sent}, status_code=202)

        @app.get("/sse/event")
        async def list_stream_connections():
            """List open connections."""
            return JSONResponse(content=self.engine.get_open_connections())

        @app.post("/sse/mock")
        async def start_stream_mock(request: Request):
            """Start a mock file or a resolved mock on open connections."""
            body, error = await self._read_json(request)
            if error:
                return error
            return self._handle_start_mock(body)

        # Admin API routes
        if self.config.admin_enabled:
            prefix = self.config.admin_prefix

            @app.get(f"{prefix}/mocks")
            async def list_mocks():
                """List all stored mocks."""
                return JSONResponse(content=self.store.list_documents())

            @app.get(f"{prefix}/mocks/{{mock_id}}")
            async def get_mock(mock_id: str):
                """Get one stored mock."""
                try:
                    return JSONResponse(content=self.store.get(mock_id))
                except MockNotFoundError:
                    return JSONResponse(content={'error': 'Mock not found'}, status_code=404)
                except (OSError, ValueError, MockDefinitionError) as e:
                    return JSONResponse(content={'error': str(e)}, status_code=500)

            @app.post(f"{prefix}/mocks")
            async def create_mock(request: Request):
                """Create or overwrite a mock for its url and scenario."""
                body, error = await self._read_json(request)
                if error:
                    return error
                try:
                    saved = self.store.save(body, domain=body.get('domain'))
                except MockDefinitionError as e:
                    return JSONResponse(content={'error': str(e)}, status_code=400)
                except OSError as e:
                    return JSONResponse(content={'error': str(e)}, status_code=500)
                return JSONResponse(content=saved)

            @app.put(f"{prefix}/mocks/{{mock_id}}")
            async def update_mock(mock_id: str, request: Request):
                """Replace a stored mock."""
                body, error = await self._read_json(request)
                if error:
                    return error
                try:
                    updated = self.store.update(mock_id, body, domain=body.get('domain'))
                except MockNotFoundError:
                    return JSONResponse(content={'error': 'Mock not found'}, status_code=404)
                except (OSError, ValueError) as e:
                    return JSONResponse(content={'error': str(e)}, status_code=500)
                return JSONResponse(content=updated)

            @app.delete(f"{prefix}/mocks/{{mock_id}}")
            async def delete_mock(mock_id: str, domain: Optional[str] = None):
                """Delete a stored mock."""
                try:
                    self.store.delete(mock_id, domain=domain)
                except MockNotFoundError:
                    return JSONResponse(content={'error': 'Mock not found'}, status_code=404)
                except OSError as e:
                    return JSONResponse(content={'error': str(e)}, status_code=500)
                return JSONResponse(content={'success': True})

            @app.get(f"{prefix}/connections")
            async def list_connections():
                """List open connections."""
                return JSONResponse(content=self.engine.get_open_connections())

            @app.post(f"{prefix}/mocks/{{mock_id}}/start")
            async def start_mock(mock_id: str, request: Request):
                """Start a stored mock on a connection or on every matching connection."""
                body, error = await self._read_json(request)
                if error:
                    return error
                try:
                    definition = self.store.get_definition(mock_id)
                except MockNotFoundError:
                    return JSONResponse(content={'error': 'Mock not found'}, status_code=404)
                except (OSError, ValueError, MockDefinitionError) as e:
                    return JSONResponse(content={'error': str(e)}, status_code=500)

                if not body.get('connectionId') and not body.get('url'):
                    return JSONResponse(
                        content={'error': 'Missing connectionId or url parameter'},
                        status_code=400
                    )
                return self._start_definition(definition, body)

        return app

    async def _read_json(self, request: Request) -> Tuple[Dict[str, Any], Optional[JSONResponse]]:
        """Parse a JSON object body, or build the 400 response explaining why not."""
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as e:
            self.logger.error(f"Invalid JSON body on {request.url.path}: {e}")
            return {}, JSONResponse(content={'error': f"Invalid JSON body: {e}"}, status_code=400)

        if not isinstance(body, dict):
            return {}, JSONResponse(content={'error': 'JSON body must be an object'}, status_code=400)

        return body, None

    def _header(self, request: Request, names: Tuple[str, ...]) -> Optional[str]:
        for name in names:
            value = request.headers.get(name)
            if value:
                return value
        return None

    def _handle_stream(self, request: Request):
        """
        Resolve a stream's mock and build its response.

        The connection is registered and its mock armed when the response
        body starts streaming.

        Args:
            request: FastAPI Request object

        Returns:
            StreamingResponse of SSE frames, or 400 if no identity header is present
        """
        identity = self._header(request, self.config.identity_headers)
        if not identity:
            names = ', '.join(self.config.identity_headers)
            return PlainTextResponse(f"Missing url header ({names})", status_code=400)

        scenario = self._header(request, self.config.scenario_headers)

        # Registration waits for the body's first step so a client that
        # leaves before streaming starts leaves nothing behind
        definition = self.engine.resolver.resolve(identity, scenario)
        status_code = definition.stream_status if definition else 200
        connection_id = generate_connection_id()

        return StreamingResponse(
            self._event_stream(connection_id, identity, scenario, definition),
            status_code=status_code,
            media_type="text/event-stream",
            headers={
                'Cache-Control': 'no-cache',
                'Connection': 'keep-alive',
                'X-Accel-Buffering': 'no',
                CONNECTION_ID_HEADER: connection_id
            }
        )

    async def _event_stream(
        self,
        connection_id: str,
        identity: str,
        scenario: Optional[str],
        definition: Optional[MockDefinition]
    ):
        """
        Register the stream, then drain its sink onto the wire until it
        closes or the client leaves.
        """
        sink = QueueSink()
        try:
            self.engine.open_stream(
                identity,
                scenario,
                sink,
                definition=definition,
                connection_id=connection_id,
                resolve=False
            )
            while True:
                try:
                    frame = await sink.get(timeout=self.config.heartbeat_interval or None)
                except asyncio.TimeoutError:
                    self.engine.dispatcher.keep_alive(connection_id)
                    continue

                if frame is None:
                    break
                yield frame
        finally:
            self.engine.close_stream(connection_id)

    def _handle_start_mock(self, body: Dict[str, Any]) -> JSONResponse:
        """
        Start a mock from ``/sse/mock``.

        Body fields:
        - mockFile: path of a document to load directly
        - url: identity to resolve a mock for and/or match connections against
        - scenario: scenario used for resolution and connection agreement
        - connectionId: single target connection
        """
        mock_file = body.get('mockFile')
        target_url = body.get('url')
        scenario = body.get('scenario') or None

        if mock_file:
            try:
                definition = self.store.load_file(mock_file)
            except (OSError, ValueError, MockDefinitionError) as e:
                self.logger.error(f"Error loading mock file {mock_file}: {e}")
                return JSONResponse(content={'error': str(e)}, status_code=400)
        elif target_url:
            definition = self.engine.resolver.resolve(target_url, scenario)
            if definition is None:
                return JSONResponse(content={'error': 'Mock file not found for URL'}, status_code=404)
        else:
            return JSONResponse(content={'error': 'Missing url or mockFile parameter'}, status_code=400)

        return self._start_definition(definition, body)

    def _start_definition(self, definition: MockDefinition, body: Dict[str, Any]) -> JSONResponse:
        """Arm a definition on the connection or URL named in the body."""
        validation = definition.validate()
        if not validation:
            return JSONResponse(
                content={'error': 'Invalid mock data', 'details': validation.errors},
                status_code=422
            )

        connection_id = body.get('connectionId')
        if connection_id:
            started_count = 1 if self.engine.start_mock_for_connection(connection_id, definition) else 0
        else:
            target_url = body.get('url') or definition.identity
            started_count = self.engine.start_mock_for_identity(
                target_url,
                definition,
                scenario=body.get('scenario') or None
            )

        if started_count == 0:
            return JSONResponse(content={'error': 'No matching connections found'}, status_code=404)

        return JSONResponse(
            content={'success': True, 'message': f"Mock started for {started_count} connection(s)"},
            status_code=202
        )

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = True
    ):
        """
        Start the SSE mock server (blocking).

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print(f"🚀 SSE Mock Server starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Stream endpoint: http://{actual_host}:{actual_port}/sse")
        print(f"   Mock folder: {self.store.root}")
        print(f"   Mocks loaded: {len(self.store.list_all_definitions())}")

        if self.config.admin_enabled:
            print(f"   Admin API: http://{actual_host}:{actual_port}{self.config.admin_prefix}/mocks")

        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_sse_server(
    mock_folder: Optional[str] = None,
    host: str = "127.0.0.1",
    port: int = 8009,
    heartbeat_interval: float = 15.0,
    admin_enabled: bool = True,
    log_level: str = "info"
) -> SSEMockServer:
    """
    Convenience function to create and configure an SSE mock server.

    Args:
        mock_folder: Mock folder root (None = environment or default)
        host: Host to bind to
        port: Port to bind to
        heartbeat_interval: Seconds between keep-alive comments (0 = never)
        admin_enabled: Enable admin API
        log_level: Log level for server and uvicorn

    Returns:
        Configured SSEMockServer instance
    """
    config = ServerConfig(
        host=host,
        port=port,
        mock_folder=str(Path(mock_folder).expanduser()) if mock_folder else None,
        heartbeat_interval=heartbeat_interval,
        admin_enabled=admin_enabled,
        log_level=log_level
    )

    return SSEMockServer(config=config)
