"""
mockapi Matching Engine

Finds the registered mock that best fits an incoming request.

Scoring:
- Every candidate starts from a base score of 100
- Route specificity is added (exact 50, static pattern 40, parameterized 30)
- Headers, URL params, body params and conditions are evaluated in that
  order; each adds its weight, and the first unmet requirement drops the
  candidate's score to 0
- The highest score wins; equal scores go to the lowest mock id
"""

import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Mapping, Protocol, Tuple

from .routes import match_route
from .criteria import (
    CriterionResult,
    evaluate_headers,
    evaluate_url_params,
    evaluate_body_params,
    evaluate_conditions,
    build_condition_view
)
from ..registry.models import MockDefinition


logger = logging.getLogger("mockapi.engine")

BASE_SCORE = 100


class MockSource(Protocol):
    """Read side of the mock registry used by the engine."""

    def find_by_method_and_exact_route(self, route: str, method: str) -> List[MockDefinition]:
        ...

    def find_by_method_with_pattern(self, path: str, method: str) -> List[MockDefinition]:
        ...


@dataclass
class RequestContext:
    """Per-request view of an incoming request."""

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    url_params: Dict[str, str] = field(default_factory=dict)

    def condition_view(self) -> Dict[str, Any]:
        """Merged view used by condition paths."""
        return build_condition_view(self.headers, self.body, self.query, self.url_params)

    def template_view(self) -> Dict[str, Any]:
        """Merged view used by response placeholders."""
        view = self.condition_view()
        view['method'] = self.method
        view['path'] = self.path
        return view


@dataclass
class MatchScore:
    """Score for a candidate mock with breakdown."""

    total_score: int
    route_score: int = 0
    header_score: int = 0
    url_param_score: int = 0
    body_param_score: int = 0
    condition_score: int = 0
    reason: str = ""

    @property
    def eligible(self) -> bool:
        """A candidate is eligible only with a positive score."""
        return self.total_score > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'total': self.total_score,
            'route': self.route_score,
            'headers': self.header_score,
            'urlParams': self.url_param_score,
            'bodyParams': self.body_param_score,
            'conditions': self.condition_score,
            'reason': self.reason
        }


@dataclass
class MatchResult:
    """Result of matching a request."""

    matched: bool
    mock: Optional[MockDefinition] = None
    url_params: Dict[str, str] = field(default_factory=dict)
    score: Optional[MatchScore] = None
    candidates: int = 0
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'matched': self.matched,
            'mockId': self.mock.id if self.mock else None,
            'mockName': self.mock.name if self.mock else None,
            'score': self.score.total_score if self.score else 0,
            'urlParams': self.url_params,
            'candidates': self.candidates,
            'reason': self.reason
        }


class MatchingEngine:
    """
    Scores candidate mocks from a registry and picks the best one.

    The engine holds no state between calls besides its mock source; each
    call works on the candidate snapshot the source returns.

    Example:
        engine = MatchingEngine(registry)
        result = engine.find_best_match('/users/42', 'GET', headers, {}, {})

        if result.matched:
            print(f"Served by {result.mock.name} (score: {result.score.total_score})")
    """

    def __init__(self, source: MockSource):
        """
        Initialize matching engine.

        Args:
            source: Registry providing candidate mocks
        """
        self.source = source

    def find_candidates(self, path: str, method: str) -> List[MockDefinition]:
        """Exact-route candidates, falling back to pattern matches."""
        candidates = self.source.find_by_method_and_exact_route(path, method)
        if not candidates:
            candidates = self.source.find_by_method_with_pattern(path, method)
        return candidates

    def find_best_match(
        self,
        request_path: str,
        method: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        query: Optional[Mapping[str, Any]] = None
    ) -> MatchResult:
        """
        Find the best mock for an incoming request.

        Args:
            request_path: Query-stripped request path
            method: HTTP method
            headers: Request headers
            body: Parsed request body
            query: Parsed query parameters

        Returns:
            MatchResult with the winning mock and its extracted URL params,
            or an unmatched result
        """
        method_upper = method.upper()
        headers = headers or {}
        body = body if body is not None else {}
        query = query or {}

        logger.debug(f"Searching mocks for: {method_upper} {request_path}")
        candidates = self.find_candidates(request_path, method_upper)
        logger.debug(f"Found {len(candidates)} potential mocks")

        if not candidates:
            return MatchResult(matched=False, reason=f"No mocks registered for {method_upper} {request_path}")

        best_mock = None
        best_score = None
        best_params: Dict[str, str] = {}

        for mock in candidates:
            score, params = self.score_candidate(mock, request_path, headers, body, query)
            if not score.eligible:
                continue
            if (
                best_score is None
                or score.total_score > best_score.total_score
                or (score.total_score == best_score.total_score and mock.id < best_mock.id)
            ):
                best_mock, best_score, best_params = mock, score, params

        if best_mock is None:
            logger.debug(f"No suitable mock found for {method_upper} {request_path}")
            return MatchResult(
                matched=False,
                candidates=len(candidates),
                reason=f"None of {len(candidates)} candidate mocks satisfied their requirements"
            )

        logger.info(f"Best match found: {best_mock.name} (id: {best_mock.id}, score: {best_score.total_score})")
        return MatchResult(
            matched=True,
            mock=best_mock,
            url_params=best_params,
            score=best_score,
            candidates=len(candidates),
            reason=f"Matched mock {best_mock.id} (score: {best_score.total_score})"
        )

    def score_candidate(
        self,
        mock: MockDefinition,
        request_path: str,
        headers: Mapping[str, str],
        body: Any,
        query: Mapping[str, Any]
    ) -> Tuple[MatchScore, Dict[str, str]]:
        """
        Calculate the score for one candidate.

        Evaluator errors disqualify the candidate rather than aborting the
        matching pass.

        Returns:
            (MatchScore, extracted URL params)
        """
        try:
            return self._score(mock, request_path, headers, body, query)
        except Exception as e:
            logger.warning(f"Error calculating score for mock {mock.name} (id: {mock.id}): {e}")
            return MatchScore(total_score=0, reason=f"Evaluation error: {e}"), {}

    def _score(
        self,
        mock: MockDefinition,
        request_path: str,
        headers: Mapping[str, str],
        body: Any,
        query: Mapping[str, Any]
    ) -> Tuple[MatchScore, Dict[str, str]]:
        if not mock.enabled:
            return MatchScore(total_score=0, reason="Mock disabled"), {}

        route = match_route(mock.route, request_path)
        if not route.matches:
            return MatchScore(total_score=0, reason="Route doesn't match"), {}

        view = build_condition_view(headers, body, query, route.params)
        checks = [
            ('header_score', lambda: evaluate_headers(mock.headers, headers)),
            ('url_param_score', lambda: evaluate_url_params(mock.url_params, route.params)),
            ('body_param_score', lambda: evaluate_body_params(mock.body_params, body)),
            ('condition_score', lambda: evaluate_conditions(mock.conditions, view)),
        ]

        score = MatchScore(total_score=BASE_SCORE + route.specificity, route_score=route.specificity)
        for attribute, check in checks:
            result: CriterionResult = check()
            if not result.satisfied:
                logger.debug(f"Mock {mock.name} (id: {mock.id}) disqualified: {result.reason}")
                return MatchScore(total_score=0, reason=result.reason), {}
            setattr(score, attribute, result.weight)
            score.total_score += result.weight

        logger.debug(f"Mock {mock.name} (id: {mock.id}) score: {score.total_score}")
        return score, dict(route.params)
