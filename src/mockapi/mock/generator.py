"""
mockapi Response Generator

Builds the response for a matched mock by filling `{{dot.path}}`
placeholders in its response template from the live request.

Placeholders resolve against:
- headers.<name>     (lower-cased header names)
- body.<field>...    (parsed request body, nested fields and list indexes)
- query.<name>       (query string parameters)
- urlParams.<name>   (parameters captured by the route pattern)
- method, path

Unresolvable placeholders are left in the output as written.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from ..common.tree import MISSING, resolve_path, stringify_value
from ..registry.models import MockDefinition
from .matcher import RequestContext


logger = logging.getLogger("mockapi.engine")

PLACEHOLDER_RE = re.compile(r'\{\{([^}]+)\}\}')


class SynthesisError(Exception):
    """Raised when a matched mock's response cannot be rendered."""

    def __init__(self, mock: MockDefinition, cause: Exception):
        super().__init__(f"Failed to render response for mock {mock.id} ({mock.name}): {cause}")
        self.mock = mock
        self.cause = cause


@dataclass(frozen=True)
class RenderedResponse:
    """Response produced for a matched mock."""

    status_code: int
    content_type: str
    body: Any

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'statusCode': self.status_code,
            'contentType': self.content_type,
            'body': self.body
        }


def render_template(template: Any, view: Mapping[str, Any]) -> Any:
    """
    Return a copy of `template` with every placeholder substituted.

    Strings have each placeholder replaced by the string form of its resolved
    value, lists and mappings are rebuilt element by element, and any other
    value is returned as is. The template itself is never modified.

    Args:
        template: Response template (any JSON-like value)
        view: Request view placeholders resolve against

    Returns:
        Rendered value

    Example:
        render_template({'id': '{{urlParams.id}}'}, {'urlParams': {'id': '42'}})
        # {'id': '42'}
    """
    if isinstance(template, str):
        return _render_string(template, view)
    if isinstance(template, list):
        return [render_template(item, view) for item in template]
    if isinstance(template, Mapping):
        return {key: render_template(value, view) for key, value in template.items()}
    return template


def _render_string(text: str, view: Mapping[str, Any]) -> str:
    def replacer(match):
        value = resolve_path(view, match.group(1))
        if value is MISSING:
            return match.group(0)
        return stringify_value(value)

    return PLACEHOLDER_RE.sub(replacer, text)


class ResponseGenerator:
    """
    Renders responses for matched mocks.

    Example:
        generator = ResponseGenerator()
        response = generator.render(mock, RequestContext('GET', '/users/42', url_params={'id': '42'}))
        print(response.body)
    """

    def render(self, mock: MockDefinition, context: RequestContext) -> RenderedResponse:
        """
        Render the response for a matched mock.

        Args:
            mock: The winning mock
            context: Request context, including extracted URL params

        Returns:
            RenderedResponse

        Raises:
            SynthesisError: If the template cannot be rendered
        """
        try:
            body = render_template(mock.response_body, context.template_view())
        except Exception as e:
            raise SynthesisError(mock, e) from e

        logger.debug(f"Rendered response for mock {mock.id} ({mock.status_code} {mock.content_type})")
        return RenderedResponse(
            status_code=mock.status_code,
            content_type=mock.content_type,
            body=body
        )
