#!/usr/bin/env python3
"""
SSE Mock CLI

Command-line interface for the SSE mock server.

Commands:
    serve        - Start the SSE mock server
    connections  - List open connections on a running server
    send         - Push an ad hoc event through a running server

Examples:
    # Start server on the default port with a custom mock folder
    ssemock serve --mock-path ./mocks

    # Start server from a YAML config file
    ssemock serve --config server.yaml

    # List open connections
    ssemock connections --server http://127.0.0.1:8009

    # Push an event to every connection streaming a URL
    ssemock send '{"price": 42}' --url https://api.example.com/prices
"""

import argparse
import json
import logging
import socket
import sys
from typing import Any, Optional

import httpx

from .common import safe_json_parse
from .mock import SSEMockServer, ServerConfig


DEFAULT_SERVER_URL = 'http://127.0.0.1:8009'


def build_config(args) -> ServerConfig:
    """Merge an optional YAML config file with command-line overrides."""
    config = ServerConfig.from_yaml(args.config) if args.config else ServerConfig()

    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.mock_path:
        config.mock_folder = args.mock_path
    if args.log_level:
        config.log_level = args.log_level
    if args.heartbeat is not None:
        config.heartbeat_interval = args.heartbeat
    if args.no_admin:
        config.admin_enabled = False

    return config


def port_in_use(host: str, port: int) -> bool:
    """Check whether a TCP port is already bound."""
    family = socket.AF_INET6 if ':' in host else socket.AF_INET
    try:
        with socket.socket(family, socket.SOCK_STREAM) as s:
            # Same option uvicorn binds with, so TIME_WAIT ports count as free
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((host, port))
        return False
    except OSError:
        return True


def cmd_serve(args):
    """
    Start the SSE mock server.

    Args:
        args: Parsed command-line arguments
    """
    print(f"🎭 SSE Mock Server")

    try:
        config = build_config(args)
    except (OSError, ValueError, TypeError) as e:
        print(f"❌ Failed to load config: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format='[%(asctime)s] %(levelname)s %(name)s: %(message)s'
    )

    if config.heartbeat_interval:
        print(f"💓 Keep-alive every {config.heartbeat_interval}s")
    else:
        print(f"💓 Periodic keep-alive disabled")

    try:
        server = SSEMockServer(config=config)
    except OSError as e:
        print(f"❌ Failed to create SSE mock server: {e}")
        sys.exit(1)

    if port_in_use(config.host, config.port):
        print(f"❌ Error: Port {config.port} is unavailable on {config.host}")
        print(f"   Stop the process using this port or choose another with --port")
        sys.exit(1)

    # Start server (blocking)
    try:
        server.start()
    except KeyboardInterrupt:
        print("\n\n👋 SSE mock server stopped")


def cmd_connections(args):
    """
    List open connections on a running server.

    Args:
        args: Parsed command-line arguments
    """
    try:
        response = httpx.get(f"{args.server.rstrip('/')}/sse/event", timeout=args.timeout)
        response.raise_for_status()
    except httpx.HTTPError as e:
        print(f"❌ Failed to fetch connections: {e}")
        sys.exit(1)

    connections = response.json()
    if args.json:
        print(json.dumps(connections, indent=2))
        return

    print(f"🔌 {len(connections)} open connection(s)")
    for conn in connections:
        scenario = f" [{conn['scenario']}]" if conn.get('scenario') else ""
        print(f"   {conn['id']}  {conn['url']}{scenario}  (since {conn['createdAt']})")


def parse_event_data(raw: str) -> Any:
    """JSON values are sent as JSON, anything else as a plain string."""
    return safe_json_parse(raw, default=raw)


def cmd_send(args):
    """
    Push an ad hoc event through a running server.

    Args:
        args: Parsed command-line arguments
    """
    body = {'data': parse_event_data(args.data)}
    if args.connection_id:
        body['connectionId'] = args.connection_id
    elif args.url:
        body['url'] = args.url

    try:
        response = httpx.post(f"{args.server.rstrip('/')}/sse/event", json=body, timeout=args.timeout)
        response.raise_for_status()
    except httpx.HTTPError as e:
        print(f"❌ Failed to send event: {e}")
        sys.exit(1)

    sent = response.json().get('sent', 0)
    print(f"📨 Event sent to {sent} connection(s)")
    if sent == 0:
        sys.exit(1)


def main(argv: Optional[list] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='ssemock',
        description="SSE Mock - Server-Sent Events mock server replaying recorded timelines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start server with a custom mock folder
  %(prog)s serve --mock-path ./mocks --port 8009

  # List open connections
  %(prog)s connections

  # Broadcast an event to every open connection
  %(prog)s send '{"hello": "world"}'
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start the SSE mock server')
    serve_parser.add_argument('--config', help='YAML config file')
    serve_parser.add_argument('--host', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, help='Port to bind (default: 8009)')
    serve_parser.add_argument('--mock-path', '--mockPath', dest='mock_path',
                              help='Mock folder root (default: $MOCKINGSSE_FOLDER or ~/.mockingsse/mocks)')
    serve_parser.add_argument('--heartbeat', type=float,
                              help='Seconds between keep-alive comments, 0 to disable (default: 15)')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable admin API')
    serve_parser.add_argument('--log-level', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')

    # --- CONNECTIONS command ---
    connections_parser = subparsers.add_parser('connections', help='List open connections')
    connections_parser.add_argument('--server', default=DEFAULT_SERVER_URL,
                                    help=f'Server base URL (default: {DEFAULT_SERVER_URL})')
    connections_parser.add_argument('--json', action='store_true', help='Print raw JSON')
    connections_parser.add_argument('--timeout', type=float, default=10.0, help='Request timeout in seconds')

    # --- SEND command ---
    send_parser = subparsers.add_parser('send', help='Push an ad hoc event')
    send_parser.add_argument('data', help='Event data (JSON or plain text)')
    target = send_parser.add_mutually_exclusive_group()
    target.add_argument('-c', '--connection-id', help='Target one connection')
    target.add_argument('-u', '--url', help='Target every connection streaming this URL')
    send_parser.add_argument('--server', default=DEFAULT_SERVER_URL,
                             help=f'Server base URL (default: {DEFAULT_SERVER_URL})')
    send_parser.add_argument('--timeout', type=float, default=10.0, help='Request timeout in seconds')

    # Parse arguments
    args = parser.parse_args(argv)

    # Dispatch to command handler
    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'connections':
        cmd_connections(args)
    elif args.command == 'send':
        cmd_send(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
