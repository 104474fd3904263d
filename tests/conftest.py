"""Shared fixtures for SSE mock tests."""

import json

import pytest

from ssemock.mock.store import MockStore


@pytest.fixture
def mock_root(tmp_path):
    """Empty mock folder root."""
    root = tmp_path / 'mocks'
    root.mkdir()
    return root


@pytest.fixture
def write_mock(mock_root):
    """Write a raw document (or text) into <root>/Domains/<domain>/SSE/<name>.json."""

    def _write(name, document, domain='Dev'):
        folder = mock_root / 'Domains' / domain / 'SSE'
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / f"{name}.json"
        if isinstance(document, str):
            path.write_text(document)
        else:
            path.write_text(json.dumps(document))
        return path

    return _write


@pytest.fixture
def store(mock_root):
    """MockStore over the temporary root."""
    return MockStore(mock_root)


@pytest.fixture
def make_document():
    """Factory for minimal valid mock documents."""

    def _make(url, scenario=None, data=None, responses=None, matching=None):
        return {
            'url': url,
            'scenario': scenario,
            'matching': matching,
            'responses': responses if responses is not None else [{'time': 0, 'response': 0, 'statusCode': 200}],
            'data': data if data is not None else [{'ok': True}]
        }

    return _make
