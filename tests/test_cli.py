"""
Tests for the ssemock command-line interface
"""

import argparse
import json
import socket
from unittest.mock import Mock, patch

import httpx
import pytest

from ssemock import cli


def serve_args(**overrides):
    values = {
        'config': None,
        'host': None,
        'port': None,
        'mock_path': None,
        'log_level': None,
        'heartbeat': None,
        'no_admin': False
    }
    values.update(overrides)
    return argparse.Namespace(**values)


def http_response(payload, status_code=200, method='GET'):
    return httpx.Response(
        status_code,
        json=payload,
        request=httpx.Request(method, 'http://127.0.0.1:8009/sse/event')
    )


class TestBuildConfig:
    """Test merging config files and flags."""

    def test_defaults(self):
        config = cli.build_config(serve_args())

        assert config.port == 8009
        assert config.admin_enabled is True

    def test_overrides(self):
        config = cli.build_config(serve_args(
            host='0.0.0.0', port=9100, mock_path='/tmp/mocks', heartbeat=0.0, no_admin=True, log_level='debug'
        ))

        assert config.host == '0.0.0.0'
        assert config.port == 9100
        assert config.mock_folder == '/tmp/mocks'
        assert config.heartbeat_interval == 0.0
        assert config.admin_enabled is False
        assert config.log_level == 'debug'

    def test_yaml_then_flags(self, tmp_path):
        path = tmp_path / 'server.yaml'
        path.write_text('port: 8100\nmock_folder: /from/yaml\n')

        config = cli.build_config(serve_args(config=str(path), port=8200))

        assert config.port == 8200
        assert config.mock_folder == '/from/yaml'


class TestParseEventData:
    """Test event data parsing."""

    def test_json(self):
        assert cli.parse_event_data('{"price": 42}') == {'price': 42}

    def test_plain_text(self):
        assert cli.parse_event_data('hello world') == 'hello world'


class TestSendCommand:
    """Test the send command."""

    @patch('ssemock.cli.httpx.post')
    def test_send_to_url(self, mock_post, capsys):
        mock_post.return_value = http_response({'success': True, 'sent': 2}, 202, 'POST')

        cli.main(['send', '{"a": 1}', '--url', 'https://api/x'])

        _, kwargs = mock_post.call_args
        assert kwargs['json'] == {'data': {'a': 1}, 'url': 'https://api/x'}
        assert 'Event sent to 2 connection(s)' in capsys.readouterr().out

    @patch('ssemock.cli.httpx.post')
    def test_send_to_connection(self, mock_post):
        mock_post.return_value = http_response({'success': True, 'sent': 1}, 202, 'POST')

        cli.main(['send', 'ping', '-c', 'abc', '--server', 'http://localhost:9000/'])

        args, kwargs = mock_post.call_args
        assert args[0] == 'http://localhost:9000/sse/event'
        assert kwargs['json'] == {'data': 'ping', 'connectionId': 'abc'}

    @patch('ssemock.cli.httpx.post')
    def test_send_nobody_listening(self, mock_post):
        mock_post.return_value = http_response({'success': True, 'sent': 0}, 202, 'POST')

        with pytest.raises(SystemExit) as exc_info:
            cli.main(['send', 'ping'])

        assert exc_info.value.code == 1

    @patch('ssemock.cli.httpx.post')
    def test_send_server_down(self, mock_post):
        mock_post.side_effect = httpx.ConnectError('connection refused')

        with pytest.raises(SystemExit):
            cli.main(['send', 'ping'])


class TestConnectionsCommand:
    """Test the connections command."""

    @patch('ssemock.cli.httpx.get')
    def test_table(self, mock_get, capsys):
        mock_get.return_value = http_response([
            {'id': '1-abc', 'url': 'https://api/x', 'scenario': 'S1', 'createdAt': '2024-01-01T00:00:00'}
        ])

        cli.main(['connections'])

        out = capsys.readouterr().out
        assert '1 open connection(s)' in out
        assert 'https://api/x [S1]' in out

    @patch('ssemock.cli.httpx.get')
    def test_json(self, mock_get, capsys):
        payload = [{'id': '1-abc', 'url': 'x', 'scenario': None, 'createdAt': 'now'}]
        mock_get.return_value = http_response(payload)

        cli.main(['connections', '--json'])

        assert json.loads(capsys.readouterr().out) == payload


class TestServeCommand:
    """Test the serve command."""

    @patch('ssemock.cli.port_in_use', return_value=False)
    @patch('ssemock.cli.SSEMockServer')
    def test_serve_starts_server(self, mock_server_class, mock_port_in_use, tmp_path):
        server = Mock()
        mock_server_class.return_value = server

        cli.main(['serve', '--mock-path', str(tmp_path), '--port', '8300', '--heartbeat', '0'])

        config = mock_server_class.call_args.kwargs['config']
        assert config.port == 8300
        assert config.mock_folder == str(tmp_path)
        mock_port_in_use.assert_called_once_with('127.0.0.1', 8300)
        server.start.assert_called_once()

    @patch('ssemock.cli.SSEMockServer')
    def test_serve_port_in_use(self, mock_server_class, tmp_path, capsys):
        """Test a bound port is reported before the server starts."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.bind(('127.0.0.1', 0))
            listener.listen(1)
            port = listener.getsockname()[1]

            with pytest.raises(SystemExit) as exc_info:
                cli.main(['serve', '--mock-path', str(tmp_path), '--port', str(port)])

        assert exc_info.value.code == 1
        assert f"Port {port} is unavailable" in capsys.readouterr().out
        mock_server_class.return_value.start.assert_not_called()

    def test_port_in_use(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.bind(('127.0.0.1', 0))
            listener.listen(1)
            port = listener.getsockname()[1]

            assert cli.port_in_use('127.0.0.1', port) is True

    def test_no_command(self):
        with pytest.raises(SystemExit):
            cli.main([])
