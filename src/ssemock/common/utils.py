"""
SSE Mock Common Utilities

Shared helpers for locating the mock folder and handling JSON values.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional


# Checked in order; the second name is kept for folders shared with MockingStar
MOCK_FOLDER_ENV_VARS = ('MOCKINGSSE_FOLDER', 'MOCKINGSTAR_FOLDER')


def get_mock_folder_from_env() -> Optional[str]:
    """
    Retrieve the mock folder path from the environment.

    Returns:
        Value of the first set variable in MOCK_FOLDER_ENV_VARS, or None
    """
    for name in MOCK_FOLDER_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


def resolve_mock_folder(explicit: Optional[str] = None) -> Path:
    """
    Resolve the mock folder root.

    Resolution order: explicit argument, environment, ``~/.mockingsse/mocks``.

    Args:
        explicit: Path given on the command line or in a config file

    Returns:
        Path to the mock folder root

    Example:
        root = resolve_mock_folder(args.mock_path)
        store = MockStore(root)
    """
    if explicit:
        return Path(explicit).expanduser()

    from_env = get_mock_folder_from_env()
    if from_env:
        return Path(from_env).expanduser()

    return Path.home() / '.mockingsse' / 'mocks'


def safe_json_parse(json_string: str, default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def serialize_payload(payload: Any) -> str:
    """
    Serialize an event payload for the wire.

    Strings are written verbatim, anything else is JSON encoded.
    """
    if isinstance(payload, str):
        return payload
    return json.dumps(payload)
