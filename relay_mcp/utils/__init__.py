"""
Utility modules for frame serialization
"""

from .fast_json import dumps, dumps_bytes, loads, JSONDecodeError

__all__ = ['dumps', 'dumps_bytes', 'loads', 'JSONDecodeError']
