"""
mockapi Mock Registry

Thread-safe store of mock definitions with optional JSON-file persistence.

Features:
- Candidate lookup for the matching engine (exact route, then route pattern)
- CRUD with monotonically increasing ids (never reused)
- Newest-first pagination with enabled filter
- Persistence to <data_dir>/mocks.json after every mutation
"""

import json
import logging
import math
import threading
from pathlib import Path
from typing import List, Dict, Any, Iterable, Optional

from pydantic import ValidationError

from .models import MockDefinition
from ..mock.routes import route_matches
from ..mock.schemas import MockCreate


logger = logging.getLogger("mockapi.registry")

# camelCase wire field -> MockDefinition attribute
UPDATABLE_FIELDS = {
    'name': 'name',
    'route': 'route',
    'method': 'method',
    'responseBody': 'response_body',
    'statusCode': 'status_code',
    'contentType': 'content_type',
    'urlParams': 'url_params',
    'bodyParams': 'body_params',
    'headers': 'headers',
    'conditions': 'conditions',
    'enabled': 'enabled',
}


# Fields the registry manages itself; dropped from seed entries
STORED_FIELDS = ('id', 'createdAt', 'updatedAt')


def strip_stored_fields(data: Any) -> Any:
    """Drop registry-managed fields so exported mocks.json entries can be re-seeded."""
    if not isinstance(data, dict):
        return data
    return {k: v for k, v in data.items() if k not in STORED_FIELDS}


class MockNotFoundError(LookupError):
    """Raised when a mock id is not registered."""

    def __init__(self, mock_id: int):
        super().__init__(f"Mock with ID {mock_id} not found")
        self.mock_id = mock_id


class DuplicateMockError(ValueError):
    """Raised when an enabled mock with identical matching rules already exists."""

    def __init__(self, existing: MockDefinition):
        super().__init__(
            f"A mock with identical matching rules already exists for {existing.method} {existing.route}"
        )
        self.existing = existing


class MockRegistry:
    """
    Registry of mock definitions.

    Reads return snapshots (lists of immutable MockDefinition objects), so a
    caller may keep using a candidate list while another thread mutates the
    registry.

    Example:
        registry = MockRegistry(data_dir='./database')
        mock = registry.create({
            'name': 'Get user',
            'route': '/users/:id',
            'method': 'GET',
            'responseBody': {'id': '{{urlParams.id}}'}
        })
        candidates = registry.find_by_method_with_pattern('/users/42', 'GET')
    """

    def __init__(self, data_dir: Optional[str] = None):
        """
        Initialize registry.

        Args:
            data_dir: Directory for mocks.json (None keeps everything in memory)
        """
        self._lock = threading.RLock()
        self._mocks: List[MockDefinition] = []
        self._next_id = 1

        self.data_dir = Path(data_dir) if data_dir else None
        self.mocks_file = self.data_dir / 'mocks.json' if self.data_dir else None

        if self.mocks_file:
            self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self):
        """Load mocks from disk, starting empty if the file is missing or unreadable."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

        if self.mocks_file.exists():
            try:
                content = self.mocks_file.read_text(encoding='utf-8').strip()
                if content:
                    data = json.loads(content)
                    self._mocks = [MockDefinition.from_dict(m) for m in data.get('mocks', [])]
                    highest = max((m.id for m in self._mocks), default=0)
                    self._next_id = max(int(data.get('nextId') or 1), highest + 1)
                    logger.info(f"Loaded {len(self._mocks)} mocks from {self.mocks_file}")
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.error(f"Could not read {self.mocks_file} ({e}), starting with an empty registry")
                self._mocks = []
                self._next_id = 1

        self._save()

    def _save(self):
        """Write mocks to disk (no-op for in-memory registries)."""
        if not self.mocks_file:
            return

        self.data_dir.mkdir(parents=True, exist_ok=True)
        content = json.dumps({
            'mocks': [m.to_dict() for m in self._mocks],
            'nextId': self._next_id
        }, indent=2)
        self.mocks_file.write_text(content, encoding='utf-8')

    # ------------------------------------------------------------------
    # Candidate lookup
    # ------------------------------------------------------------------

    def find_by_method_and_exact_route(self, route: str, method: str) -> List[MockDefinition]:
        """Enabled mocks whose route equals `route` literally, in registry order."""
        method_upper = method.upper()
        with self._lock:
            return [
                m for m in self._mocks
                if m.enabled and m.method == method_upper and m.route == route
            ]

    def find_by_method_with_pattern(self, path: str, method: str) -> List[MockDefinition]:
        """Enabled mocks for `method` whose route pattern matches `path`."""
        method_upper = method.upper()
        with self._lock:
            candidates = [m for m in self._mocks if m.enabled and m.method == method_upper]
        return [m for m in candidates if route_matches(m.route, path)]

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, data: Dict[str, Any]) -> MockDefinition:
        """
        Register a new mock.

        Args:
            data: camelCase mock definition (without id)

        Returns:
            The stored MockDefinition

        Raises:
            DuplicateMockError: If an enabled mock has identical matching rules
        """
        with self._lock:
            mock = MockDefinition.from_dict(data, mock_id=self._next_id)

            if mock.enabled:
                key = mock.criteria_key()
                for existing in self._mocks:
                    if existing.enabled and existing.criteria_key() == key:
                        raise DuplicateMockError(existing)

            self._next_id += 1
            self._mocks.append(mock)
            self._save()

        logger.info(f"Created mock {mock.id} ({mock.method} {mock.route})")
        return mock

    def get(self, mock_id: int) -> Optional[MockDefinition]:
        """Get a mock by id, or None."""
        with self._lock:
            for mock in self._mocks:
                if mock.id == mock_id:
                    return mock
        return None

    def update(self, mock_id: int, changes: Dict[str, Any]) -> MockDefinition:
        """
        Apply a partial update.

        Keys set to None are ignored; unknown keys (including 'id') are ignored.

        Raises:
            MockNotFoundError: If the id is unknown
        """
        field_changes = {
            UPDATABLE_FIELDS[key]: value
            for key, value in changes.items()
            if key in UPDATABLE_FIELDS and value is not None
        }

        with self._lock:
            index = self._index_of(mock_id)
            updated = self._mocks[index].with_changes(**field_changes)
            self._mocks[index] = updated
            self._save()

        logger.info(f"Updated mock {mock_id}: {sorted(field_changes)}")
        return updated

    def toggle(self, mock_id: int) -> MockDefinition:
        """Flip a mock's enabled flag."""
        with self._lock:
            current = self._mocks[self._index_of(mock_id)]
            return self.update(mock_id, {'enabled': not current.enabled})

    def delete(self, mock_id: int) -> bool:
        """Delete a mock. Returns False if the id is unknown."""
        with self._lock:
            try:
                index = self._index_of(mock_id)
            except MockNotFoundError:
                return False
            del self._mocks[index]
            self._save()

        logger.info(f"Deleted mock {mock_id}")
        return True

    def _index_of(self, mock_id: int) -> int:
        for index, mock in enumerate(self._mocks):
            if mock.id == mock_id:
                return index
        raise MockNotFoundError(mock_id)

    def load_definitions(self, definitions: Iterable[Dict[str, Any]]) -> int:
        """
        Register mocks from seed data.

        Each entry gets the same validation as the admin API; invalid entries
        and duplicates are skipped with a warning.

        Returns:
            Number of mocks created
        """
        created = 0
        for index, data in enumerate(definitions):
            try:
                payload = MockCreate.model_validate(strip_stored_fields(data))
            except ValidationError as e:
                logger.warning(f"Skipping invalid seed mock {index}: {e.error_count()} validation errors")
                continue
            try:
                self.create(payload.model_dump())
                created += 1
            except DuplicateMockError as e:
                logger.warning(f"Skipping seed mock {index}: {e}")
        return created

    # ------------------------------------------------------------------
    # Listing and stats
    # ------------------------------------------------------------------

    def all(self) -> List[MockDefinition]:
        """Snapshot of every mock in registry order."""
        with self._lock:
            return list(self._mocks)

    def list(self, page: int = 1, limit: int = 10, enabled: Optional[bool] = None) -> Dict[str, Any]:
        """
        Newest-first page of mocks.

        Args:
            page: 1-based page number
            limit: Page size
            enabled: Only include mocks with this enabled flag (None = all)

        Returns:
            {'data': [MockDefinition], 'pagination': {page, limit, total, pages}}
        """
        page = max(page, 1)
        limit = max(limit, 1)

        mocks = self.all()
        if enabled is not None:
            mocks = [m for m in mocks if m.enabled == enabled]
        mocks.sort(key=lambda m: (m.created_at, m.id), reverse=True)

        offset = (page - 1) * limit
        return {
            'data': mocks[offset:offset + limit],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': len(mocks),
                'pages': math.ceil(len(mocks) / limit)
            }
        }

    def database_size(self) -> int:
        """Size in bytes of the mocks file (0 when in memory)."""
        if self.mocks_file and self.mocks_file.exists():
            return self.mocks_file.stat().st_size
        return 0

    def stats(self) -> Dict[str, Any]:
        """Registry statistics."""
        mocks = self.all()
        return {
            'totalMocks': len(mocks),
            'enabledMocks': sum(1 for m in mocks if m.enabled),
            'databasePath': str(self.data_dir) if self.data_dir else None,
            'databaseSize': self.database_size()
        }
