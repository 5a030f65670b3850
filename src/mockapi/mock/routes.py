"""
mockapi Route Matcher

Compiles mock route patterns and matches concrete request paths against them.

Pattern syntax:
- Literal segments: /api/users
- Named parameters: /api/users/:id (one path segment, no '/')
- Wildcard: /static/* (any remaining suffix, '/' included)
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Pattern, Tuple


# Route specificity tiers
EXACT_SPECIFICITY = 50
STATIC_PATTERN_SPECIFICITY = 40
PARAM_PATTERN_SPECIFICITY = 30

_TOKEN_RE = re.compile(r':([^\s/]+)|\*')


@dataclass(frozen=True)
class RouteMatch:
    """Outcome of matching a path against a route pattern."""

    matches: bool
    specificity: int = 0
    params: Dict[str, str] = field(default_factory=dict)


NO_ROUTE_MATCH = RouteMatch(matches=False)


@lru_cache(maxsize=1024)
def compile_route(pattern: str) -> Tuple[Pattern, Tuple[str, ...]]:
    """
    Compile a route pattern into an anchored regex.

    Args:
        pattern: Route pattern (e.g. /users/:id/orders/*)

    Returns:
        (compiled regex, parameter names in declaration order)
    """
    param_names: List[str] = []
    regex_parts: List[str] = []
    position = 0

    for token in _TOKEN_RE.finditer(pattern):
        regex_parts.append(re.escape(pattern[position:token.start()]))
        if token.group(1) is not None:
            param_names.append(token.group(1))
            regex_parts.append('([^/]+)')
        else:
            regex_parts.append('.*')
        position = token.end()

    regex_parts.append(re.escape(pattern[position:]))
    return re.compile('^' + ''.join(regex_parts) + '$'), tuple(param_names)


def match_route(pattern: str, path: str) -> RouteMatch:
    """
    Match a request path against a route pattern.

    An identical pattern and path is an exact match. Otherwise the pattern is
    compiled and must match the whole path; routes declaring parameters rank
    below routes that don't.

    If a parameter name is declared twice, the later segment's value wins.

    Args:
        pattern: Route pattern
        path: Query-stripped request path

    Returns:
        RouteMatch with specificity and extracted parameters
    """
    if pattern == path:
        return RouteMatch(matches=True, specificity=EXACT_SPECIFICITY)

    regex, param_names = compile_route(pattern)
    match = regex.fullmatch(path)
    if not match:
        return NO_ROUTE_MATCH

    params = {name: value for name, value in zip(param_names, match.groups())}
    specificity = PARAM_PATTERN_SPECIFICITY if param_names else STATIC_PATTERN_SPECIFICITY
    return RouteMatch(matches=True, specificity=specificity, params=params)


def route_matches(pattern: str, path: str) -> bool:
    """Check whether a path matches a route pattern."""
    return match_route(pattern, path).matches
