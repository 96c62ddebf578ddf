"""
Fast JSON utility module backed by orjson

Every JSON-RPC frame that crosses a transport is encoded and decoded here,
so transports never reach for the standard json module directly.
"""

from typing import Any, Callable, Optional, Union

import orjson


class JSONDecodeError(ValueError):
    """Raised when an inbound payload is not valid JSON"""


def dumps(obj: Any, default: Optional[Callable[[Any], Any]] = None) -> str:
    """
    Serialize an object to a JSON string.

    Args:
        obj: Object to serialize
        default: Optional fallback for types orjson cannot encode natively

    Returns:
        JSON string
    """
    # orjson returns bytes, transports want text frames
    return orjson.dumps(obj, default=default).decode('utf-8')


def dumps_bytes(obj: Any) -> bytes:
    """
    Serialize an object to JSON bytes (orjson native format).

    Args:
        obj: Object to serialize

    Returns:
        JSON bytes
    """
    return orjson.dumps(obj)


def loads(s: Union[str, bytes]) -> Any:
    """
    Deserialize a JSON document.

    Args:
        s: JSON string or bytes to deserialize

    Returns:
        Parsed object

    Raises:
        JSONDecodeError: If the payload is not valid JSON
    """
    try:
        return orjson.loads(s)
    except orjson.JSONDecodeError as e:
        raise JSONDecodeError(str(e)) from e


__all__ = ['dumps', 'dumps_bytes', 'loads', 'JSONDecodeError']
