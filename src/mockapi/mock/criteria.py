"""
mockapi Criterion Evaluators

Checks a mock's matching requirements against an incoming request.

Each evaluator answers two questions: does the request satisfy every
requirement of this kind, and how specific was the match? An unmet
requirement disqualifies the mock outright; the weight only ranks mocks that
satisfy everything.

Weights (per satisfied requirement):
- Headers: wildcard 5, glob pattern 8, exact value 10
- URL params: required 5, literal 5, number 10
- Body params: required 10, literal 15
- Conditions: 20
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..common.tree import MISSING, resolve_path, stringify_value, strict_equals


HEADER_WILDCARD_WEIGHT = 5
HEADER_PATTERN_WEIGHT = 8
HEADER_EXACT_WEIGHT = 10

URL_REQUIRED_WEIGHT = 5
URL_LITERAL_WEIGHT = 5
URL_NUMBER_WEIGHT = 10

BODY_REQUIRED_WEIGHT = 10
BODY_LITERAL_WEIGHT = 15

CONDITION_WEIGHT = 20

NUMERIC_SEGMENT_RE = re.compile(
    r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
    r"|[+-]?Infinity"
    r"|0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+"
)


class ConstraintKind(Enum):
    """Kinds of parameter constraint a mock can declare."""

    REQUIRED = 'required'
    NUMBER = 'number'
    LITERAL = 'literal'


@dataclass(frozen=True)
class Constraint:
    """A parsed parameter constraint; `value` is set only for LITERAL."""

    kind: ConstraintKind
    value: Any = None

    @classmethod
    def parse(cls, raw: Any, allow_number: bool = True) -> 'Constraint':
        """
        Parse a stored constraint tag.

        Args:
            raw: Stored tag ("required", "number" or any literal value)
            allow_number: Whether "number" is a kind here (URL params) or a
                plain literal string (body params)

        Returns:
            Constraint
        """
        if raw == ConstraintKind.REQUIRED.value:
            return cls(ConstraintKind.REQUIRED)
        if allow_number and raw == ConstraintKind.NUMBER.value:
            return cls(ConstraintKind.NUMBER)
        return cls(ConstraintKind.LITERAL, raw)


@dataclass(frozen=True)
class CriterionResult:
    """Result of evaluating one kind of requirement."""

    satisfied: bool
    weight: int = 0
    reason: str = ""


SATISFIED_EMPTY = CriterionResult(satisfied=True)


def _disqualified(reason: str) -> CriterionResult:
    return CriterionResult(satisfied=False, weight=0, reason=reason)


def _is_numeric(value: str) -> bool:
    """Check whether a path segment is a numeric literal (decimal, hex, octal, binary or Infinity)."""
    return NUMERIC_SEGMENT_RE.fullmatch(value.strip()) is not None


def _glob_matches(pattern: str, value: str) -> bool:
    """Case-insensitive full match where '*' stands for any run of characters."""
    regex = '.*'.join(re.escape(part) for part in pattern.split('*'))
    return re.fullmatch(regex, value, re.IGNORECASE | re.DOTALL) is not None


def evaluate_headers(
    required: Optional[Mapping[str, Any]],
    request_headers: Mapping[str, str]
) -> CriterionResult:
    """
    Evaluate required headers.

    Header names are compared case-insensitively. An empty header value
    counts as absent.

    Args:
        required: Header name -> expected value ("*", glob pattern or exact)
        request_headers: Incoming request headers

    Returns:
        CriterionResult
    """
    if not required:
        return SATISFIED_EMPTY

    lowered = {str(k).lower(): v for k, v in request_headers.items()}
    weight = 0

    for name, expected in required.items():
        actual = lowered.get(name.lower())
        if not actual:
            return _disqualified(f"Missing required header: {name}")

        expected_text = stringify_value(expected)
        if expected_text == '*':
            weight += HEADER_WILDCARD_WEIGHT
        elif expected_text == actual:
            weight += HEADER_EXACT_WEIGHT
        elif '*' in expected_text:
            if not _glob_matches(expected_text, actual):
                return _disqualified(f"Header {name} doesn't match pattern: {expected_text}")
            weight += HEADER_PATTERN_WEIGHT
        else:
            return _disqualified(f"Header {name} doesn't match: expected {expected_text}, got {actual}")

    return CriterionResult(satisfied=True, weight=weight)


def evaluate_url_params(
    required: Optional[Mapping[str, Any]],
    extracted_params: Mapping[str, str]
) -> CriterionResult:
    """
    Evaluate constraints on parameters extracted from the route.

    Args:
        required: Param name -> constraint tag ("required", "number" or literal)
        extracted_params: Parameters captured by the route matcher

    Returns:
        CriterionResult
    """
    if not required:
        return SATISFIED_EMPTY

    weight = 0
    for name, raw in required.items():
        actual = extracted_params.get(name)
        if actual is None:
            return _disqualified(f"Missing required URL param: {name}")

        constraint = Constraint.parse(raw)
        if constraint.kind is ConstraintKind.REQUIRED:
            weight += URL_REQUIRED_WEIGHT
        elif constraint.kind is ConstraintKind.NUMBER:
            if not _is_numeric(actual):
                return _disqualified(f"URL param {name} is not a number: {actual}")
            weight += URL_NUMBER_WEIGHT
        else:
            expected = stringify_value(constraint.value)
            if expected != actual:
                return _disqualified(f"URL param {name} doesn't match: expected {expected}, got {actual}")
            weight += URL_LITERAL_WEIGHT

    return CriterionResult(satisfied=True, weight=weight)


def evaluate_body_params(
    required: Optional[Mapping[str, Any]],
    body: Any
) -> CriterionResult:
    """
    Evaluate constraints on top-level fields of the parsed request body.

    Args:
        required: Field name -> "required" or a literal expected value
        body: Parsed request body (non-mapping bodies have no fields)

    Returns:
        CriterionResult
    """
    if not required:
        return SATISFIED_EMPTY

    fields = body if isinstance(body, Mapping) else {}
    weight = 0

    for name, raw in required.items():
        actual = fields.get(name, MISSING)
        constraint = Constraint.parse(raw, allow_number=False)

        if constraint.kind is ConstraintKind.REQUIRED:
            if actual is MISSING or actual is None or actual == '':
                return _disqualified(f"Missing required body param: {name}")
            weight += BODY_REQUIRED_WEIGHT
        else:
            if actual is MISSING or not strict_equals(actual, constraint.value):
                return _disqualified(
                    f"Body param {name} doesn't match: expected {constraint.value!r}, got {actual!r}"
                )
            weight += BODY_LITERAL_WEIGHT

    return CriterionResult(satisfied=True, weight=weight)


def evaluate_conditions(
    conditions: Optional[Mapping[str, Any]],
    request_view: Mapping[str, Any]
) -> CriterionResult:
    """
    Evaluate dot-path conditions against the merged request view.

    Args:
        conditions: Dot path (e.g. "body.user.type") -> expected value
        request_view: {'headers', 'body', 'query', 'urlParams'}

    Returns:
        CriterionResult
    """
    if not conditions:
        return SATISFIED_EMPTY

    weight = 0
    for path, expected in conditions.items():
        actual = resolve_path(request_view, path)
        if actual is MISSING:
            return _disqualified(f"Condition path not found: {path}")
        if not strict_equals(actual, expected):
            return _disqualified(f"Condition doesn't match: {path} = {actual!r}, expected {expected!r}")
        weight += CONDITION_WEIGHT

    return CriterionResult(satisfied=True, weight=weight)


def build_condition_view(
    headers: Mapping[str, str],
    body: Any,
    query: Mapping[str, Any],
    url_params: Mapping[str, str]
) -> Dict[str, Any]:
    """Build the merged view conditions are resolved against."""
    return {
        'headers': headers,
        'body': body,
        'query': query,
        'urlParams': url_params,
    }
