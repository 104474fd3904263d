"""
Tests for common utilities
"""

from pathlib import Path

import pytest

from ssemock.common.utils import (
    get_mock_folder_from_env,
    resolve_mock_folder,
    safe_json_parse,
    serialize_payload
)


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.delenv('MOCKINGSSE_FOLDER', raising=False)
    monkeypatch.delenv('MOCKINGSTAR_FOLDER', raising=False)
    return monkeypatch


class TestMockFolder:
    """Test mock folder resolution."""

    def test_env_priority(self, clean_env):
        clean_env.setenv('MOCKINGSTAR_FOLDER', '/shared')
        assert get_mock_folder_from_env() == '/shared'

        clean_env.setenv('MOCKINGSSE_FOLDER', '/own')
        assert get_mock_folder_from_env() == '/own'

    def test_no_env(self, clean_env):
        assert get_mock_folder_from_env() is None

    def test_explicit_wins(self, clean_env):
        clean_env.setenv('MOCKINGSSE_FOLDER', '/own')

        assert resolve_mock_folder('/cli') == Path('/cli')

    def test_env_used(self, clean_env):
        clean_env.setenv('MOCKINGSSE_FOLDER', '/own')

        assert resolve_mock_folder() == Path('/own')

    def test_home_default(self, clean_env):
        assert resolve_mock_folder() == Path.home() / '.mockingsse' / 'mocks'


class TestJsonHelpers:
    """Test JSON helpers."""

    def test_safe_json_parse(self):
        assert safe_json_parse('{"a": 1}') == {'a': 1}
        assert safe_json_parse('not json', default='fallback') == 'fallback'
        assert safe_json_parse('', default=[]) == []

    def test_serialize_payload(self):
        assert serialize_payload('plain text') == 'plain text'
        assert serialize_payload({'a': [1, 2]}) == '{"a": [1, 2]}'
        assert serialize_payload(None) == 'null'
