"""
mockapi Mock Definition

The stored rule mapping a method + route (plus optional constraints) to a
response template.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Any, Optional


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class MockDefinition:
    """
    A registered mock.

    Instances are immutable; the registry replaces them on update so that any
    snapshot handed to the matching engine stays consistent.
    """

    id: int
    name: str
    route: str
    method: str
    response_body: Any = None
    status_code: int = 200
    content_type: str = "application/json"
    url_params: Dict[str, Any] = field(default_factory=dict)
    body_params: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, Any] = field(default_factory=dict)
    conditions: Dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], mock_id: Optional[int] = None) -> 'MockDefinition':
        """
        Create a MockDefinition from its camelCase wire form.

        Args:
            data: Mock dictionary (as stored in mocks.json or sent to the admin API)
            mock_id: Id to assign (overrides data['id'])

        Returns:
            MockDefinition
        """
        now = utc_now_iso()
        return cls(
            id=int(mock_id if mock_id is not None else data['id']),
            name=data.get('name') or '',
            route=data['route'],
            method=str(data['method']).upper(),
            response_body=data.get('responseBody'),
            status_code=int(data.get('statusCode') or 200),
            content_type=data.get('contentType') or 'application/json',
            url_params=dict(data.get('urlParams') or {}),
            body_params=dict(data.get('bodyParams') or {}),
            headers=dict(data.get('headers') or {}),
            conditions=dict(data.get('conditions') or {}),
            enabled=data.get('enabled', True) is not False,
            created_at=data.get('createdAt') or now,
            updated_at=data.get('updatedAt') or now
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire form."""
        return {
            'id': self.id,
            'name': self.name,
            'route': self.route,
            'method': self.method,
            'urlParams': self.url_params,
            'bodyParams': self.body_params,
            'headers': self.headers,
            'statusCode': self.status_code,
            'responseBody': self.response_body,
            'contentType': self.content_type,
            'conditions': self.conditions,
            'enabled': self.enabled,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at
        }

    def criteria_key(self) -> tuple:
        """Identity of the mock's matching rules, used to detect duplicates."""
        rules = [self.headers, self.url_params, self.body_params, self.conditions]
        return (self.method, self.route, json.dumps(rules, sort_keys=True, default=str))

    def with_changes(self, **changes: Any) -> 'MockDefinition':
        """Return a copy with the given fields replaced and updated_at refreshed."""
        if 'method' in changes and changes['method'] is not None:
            changes['method'] = str(changes['method']).upper()
        changes['updated_at'] = utc_now_iso()
        return replace(self, **changes)
