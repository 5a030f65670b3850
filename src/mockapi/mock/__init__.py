"""
mockapi Mock Module

Request matching and response rendering for registered mocks.

This module provides:
- Route pattern matcher
- Criterion evaluators (headers, URL params, body params, conditions)
- Matching engine
- Template-based response generator

The FastAPI server lives in mockapi.mock.server.
"""

from .routes import RouteMatch, match_route, route_matches
from .criteria import (
    Constraint,
    ConstraintKind,
    CriterionResult,
    evaluate_headers,
    evaluate_url_params,
    evaluate_body_params,
    evaluate_conditions
)
from .matcher import MatchingEngine, MatchResult, MatchScore, RequestContext
from .generator import ResponseGenerator, RenderedResponse, SynthesisError, render_template

__all__ = [
    # Routes
    'RouteMatch',
    'match_route',
    'route_matches',

    # Criteria
    'Constraint',
    'ConstraintKind',
    'CriterionResult',
    'evaluate_headers',
    'evaluate_url_params',
    'evaluate_body_params',
    'evaluate_conditions',

    # Matcher
    'MatchingEngine',
    'MatchResult',
    'MatchScore',
    'RequestContext',

    # Generator
    'ResponseGenerator',
    'RenderedResponse',
    'SynthesisError',
    'render_template',
]
