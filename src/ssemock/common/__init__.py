"""
SSE Mock Common Utilities

Shared utilities and helpers used across SSE mock modules.
"""

from .utils import get_mock_folder_from_env, resolve_mock_folder, safe_json_parse, serialize_payload
from .url_utils import IdentityMatcher, MatchPolicy

__all__ = [
    'get_mock_folder_from_env',
    'resolve_mock_folder',
    'safe_json_parse',
    'serialize_payload',
    'IdentityMatcher',
    'MatchPolicy'
]
