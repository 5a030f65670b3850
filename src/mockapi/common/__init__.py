"""
mockapi Common Utilities

Shared utilities and helpers used across mockapi modules.
"""

from .utils import safe_json_parse, flatten_query, parse_form_body, MockFileLoader
from .tree import MISSING, resolve_path, stringify_value, strict_equals

__all__ = [
    'safe_json_parse',
    'flatten_query',
    'parse_form_body',
    'MockFileLoader',
    'MISSING',
    'resolve_path',
    'stringify_value',
    'strict_equals',
]
