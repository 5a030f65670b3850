"""
mockapi Common Utilities

Shared helpers for parsing request payloads and loading mock seed files.
"""

import json
from pathlib import Path
from typing import List, Dict, Any, Iterable, Tuple
from urllib.parse import parse_qsl

import yaml


def safe_json_parse(json_string: Any, default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string (or bytes) to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        body = safe_json_parse(await request.body(), default={})
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def flatten_query(pairs: Iterable[Tuple[str, str]]) -> Dict[str, Any]:
    """
    Collapse query pairs into a mapping.

    A key seen once maps to its string value; a repeated key maps to the list
    of its values in order.
    """
    query: Dict[str, Any] = {}
    for key, value in pairs:
        if key not in query:
            query[key] = value
        elif isinstance(query[key], list):
            query[key].append(value)
        else:
            query[key] = [query[key], value]
    return query


def parse_form_body(raw: bytes) -> Dict[str, Any]:
    """Parse an application/x-www-form-urlencoded body into a flat mapping."""
    try:
        text = raw.decode('utf-8')
    except UnicodeDecodeError:
        return {}
    return flatten_query(parse_qsl(text, keep_blank_values=True))


class MockFileLoader:
    """
    Loader for mock seed files.

    Handles the formats a seed file may take:
    - {"mocks": [...]}  (registry dump, JSON or YAML)
    - [...]             (plain list of mock definitions)

    Example:
        loader = MockFileLoader("mocks.yaml")
        for data in loader.load():
            registry.create(data)
    """

    def __init__(self, file_path: str):
        """
        Initialize mock file loader.

        Args:
            file_path: Path to a .json, .yaml or .yml file
        """
        self.file_path = Path(file_path)

    def load(self) -> List[Dict[str, Any]]:
        """
        Load raw mock definitions from the file.

        Returns:
            List of mock definition dictionaries

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the content is not a recognised format
        """
        if not self.file_path.exists():
            raise FileNotFoundError(f"Mock file not found: {self.file_path}")

        with open(self.file_path, 'r', encoding='utf-8') as f:
            if self.file_path.suffix.lower() in ('.yaml', '.yml'):
                try:
                    data = yaml.safe_load(f)
                except yaml.YAMLError as e:
                    raise ValueError(f"Invalid YAML in {self.file_path}: {e}") from e
            else:
                data = json.load(f)

        if isinstance(data, dict):
            if 'mocks' in data and isinstance(data['mocks'], list):
                return data['mocks']
            raise ValueError(
                f"Unexpected format in {self.file_path}. "
                f"Expected a list or a dict with a 'mocks' key. Found keys: {list(data.keys())}"
            )
        elif isinstance(data, list):
            return data
        else:
            raise ValueError(
                f"Unexpected format in {self.file_path}. "
                f"Expected dict or list, got {type(data).__name__}"
            )

    @staticmethod
    def load_from_file(file_path: str) -> List[Dict[str, Any]]:
        """Convenience method to load mock definitions in one call."""
        return MockFileLoader(file_path).load()
