"""
Tests for mockapi Matching Engine

Tests candidate scoring and selection including:
- Exact-route preference over patterns
- Header, URL param, body param and condition requirements
- Disqualification and tie-breaking
- Evaluator failures
"""

import pytest
from unittest.mock import patch

from mockapi.mock.matcher import (
    BASE_SCORE,
    MatchingEngine,
    MatchResult,
    MatchScore,
    RequestContext
)
from mockapi.mock.criteria import evaluate_headers
from mockapi.registry import MockRegistry
from mockapi.registry.models import MockDefinition


@pytest.fixture
def registry():
    """Empty in-memory registry."""
    return MockRegistry()


@pytest.fixture
def engine(registry):
    """Matching engine over the registry fixture."""
    return MatchingEngine(registry)


def add_mock(registry, **overrides):
    """Register a mock with sensible defaults."""
    data = {
        'name': overrides.pop('name', 'mock'),
        'route': overrides.pop('route', '/users/:id'),
        'method': overrides.pop('method', 'GET'),
        'responseBody': overrides.pop('responseBody', {'ok': True})
    }
    data.update(overrides)
    return registry.create(data)


class TestMatchScore:
    """Test MatchScore dataclass."""

    def test_eligible(self):
        assert MatchScore(total_score=130).eligible is True
        assert MatchScore(total_score=0).eligible is False

    def test_to_dict(self):
        score = MatchScore(total_score=155, route_score=30, header_score=10, condition_score=20)

        data = score.to_dict()

        assert data['total'] == 155
        assert data['route'] == 30
        assert data['headers'] == 10
        assert data['conditions'] == 20


class TestMatchResult:
    """Test MatchResult dataclass."""

    def test_unmatched_to_dict(self):
        data = MatchResult(matched=False, reason='nothing').to_dict()

        assert data['matched'] is False
        assert data['mockId'] is None
        assert data['score'] == 0


class TestRequestContext:
    """Test request views."""

    def test_condition_view(self):
        context = RequestContext('GET', '/users/1', headers={'a': '1'}, url_params={'id': '1'})

        view = context.condition_view()

        assert set(view) == {'headers', 'body', 'query', 'urlParams'}
        assert view['urlParams'] == {'id': '1'}

    def test_template_view_adds_method_and_path(self):
        view = RequestContext('POST', '/orders').template_view()

        assert view['method'] == 'POST'
        assert view['path'] == '/orders'


class TestFindBestMatch:
    """Test best-match selection."""

    def test_no_candidates(self, engine):
        result = engine.find_best_match('/nothing', 'GET')

        assert result.matched is False
        assert result.candidates == 0

    def test_param_route_match(self, registry, engine):
        """Test GET /users/42 matches /users/:id and extracts the id."""
        mock = add_mock(registry, route='/users/:id')

        result = engine.find_best_match('/users/42', 'GET', {}, {}, {})

        assert result.matched is True
        assert result.mock.id == mock.id
        assert result.url_params == {'id': '42'}
        assert result.score.total_score == BASE_SCORE + 30

    def test_method_must_match(self, registry, engine):
        add_mock(registry, route='/users/:id', method='POST')

        assert engine.find_best_match('/users/42', 'GET').matched is False

    def test_method_is_case_insensitive(self, registry, engine):
        add_mock(registry, route='/users/:id', method='GET')

        assert engine.find_best_match('/users/42', 'get').matched is True

    def test_literal_beats_param(self, registry, engine):
        """Test /items/5 (literal) wins over /items/:id for GET /items/5."""
        add_mock(registry, name='param', route='/items/:id')
        literal = add_mock(registry, name='literal', route='/items/5')

        result = engine.find_best_match('/items/5', 'GET')

        assert result.mock.id == literal.id
        assert result.url_params == {}

    def test_literal_wins_regardless_of_param_criteria(self, registry, engine):
        """Test exact-route candidates are used even if a pattern mock would score higher."""
        add_mock(registry, name='param', route='/items/:id', urlParams={'id': 'number'},
                 conditions={'query.debug': '1'})
        literal = add_mock(registry, name='literal', route='/items/5')

        result = engine.find_best_match('/items/5', 'GET', {}, {}, {'debug': '1'})

        assert result.mock.id == literal.id

    def test_disqualified_exact_candidates_do_not_fall_back(self, registry, engine):
        """Test exact candidates that are disqualified do not fall back to patterns."""
        add_mock(registry, name='param', route='/items/:id')
        add_mock(registry, name='literal', route='/items/5', headers={'x-api-key': 'secret'})

        result = engine.find_best_match('/items/5', 'GET')

        assert result.matched is False

    def test_missing_required_header(self, registry, engine):
        """Test a route match without the required header is no match."""
        add_mock(registry, route='/secure', headers={'x-api-key': 'secret'})

        assert engine.find_best_match('/secure', 'GET', {}, {}, {}).matched is False
        assert engine.find_best_match('/secure', 'GET', {'x-api-key': 'secret'}, {}, {}).matched is True

    def test_condition_on_body(self, registry, engine):
        """Test body.type condition selects premium requests only."""
        add_mock(registry, route='/orders', method='POST', conditions={'body.type': 'premium'})

        assert engine.find_best_match('/orders', 'POST', {}, {'type': 'basic'}, {}).matched is False
        assert engine.find_best_match('/orders', 'POST', {}, {'type': 'premium'}, {}).matched is True

    def test_more_specific_mock_wins(self, registry, engine):
        """Test a mock with a satisfied condition outranks the plain one."""
        add_mock(registry, name='default', route='/orders', method='POST')
        premium = add_mock(registry, name='premium', route='/orders', method='POST',
                           conditions={'body.type': 'premium'})

        result = engine.find_best_match('/orders', 'POST', {}, {'type': 'premium'}, {})

        assert result.mock.id == premium.id
        assert result.score.condition_score == 20

    def test_unmet_requirement_hands_over_to_other_mock(self, registry, engine):
        """Test adding an unmet requirement never leaves the same mock winning."""
        plain = add_mock(registry, name='plain', route='/users/:id')
        strict = add_mock(registry, name='strict', route='/users/:id', urlParams={'id': 'number'})

        numeric = engine.find_best_match('/users/42', 'GET')
        textual = engine.find_best_match('/users/abc', 'GET')

        assert numeric.mock.id == strict.id
        assert textual.mock.id == plain.id

    def test_disqualification_is_monotonic(self, registry, engine):
        """Test an unmet required constraint turns a match into no match."""
        mock = add_mock(registry, route='/users/:id')
        assert engine.find_best_match('/users/42', 'GET').mock.id == mock.id

        registry.update(mock.id, {'bodyParams': {'email': 'required'}})

        assert engine.find_best_match('/users/42', 'GET').matched is False

    def test_disabled_mock_never_matches(self, registry, engine):
        mock = add_mock(registry, route='/users/:id')
        registry.toggle(mock.id)

        assert engine.find_best_match('/users/42', 'GET').matched is False

    def test_tie_goes_to_lowest_id(self, registry, engine):
        """Test equal scores are broken by lowest id."""
        first = add_mock(registry, name='first', route='/users/:id', headers={'x-a': '*'})
        add_mock(registry, name='second', route='/users/:id', headers={'x-b': '*'})

        result = engine.find_best_match('/users/1', 'GET', {'x-a': '1', 'x-b': '1'}, {}, {})

        assert result.mock.id == first.id

    def test_tie_break_ignores_retrieval_order(self, engine):
        """Test tie-breaking does not depend on candidate order."""
        low = MockDefinition(id=1, name='low', route='/x', method='GET')
        high = MockDefinition(id=2, name='high', route='/x', method='GET')

        with patch.object(engine.source, 'find_by_method_and_exact_route', return_value=[high, low]):
            result = engine.find_best_match('/x', 'GET')

        assert result.mock.id == 1

    def test_score_breakdown(self, registry, engine):
        add_mock(
            registry,
            route='/users/:id',
            method='POST',
            headers={'authorization': 'Bearer *'},
            urlParams={'id': 'number'},
            bodyParams={'name': 'required'},
            conditions={'query.v': '2'}
        )

        result = engine.find_best_match(
            '/users/7', 'POST', {'authorization': 'Bearer t'}, {'name': 'n'}, {'v': '2'}
        )

        score = result.score
        assert score.route_score == 30
        assert score.header_score == 8
        assert score.url_param_score == 10
        assert score.body_param_score == 10
        assert score.condition_score == 20
        assert score.total_score == BASE_SCORE + 30 + 8 + 10 + 10 + 20


class TestScoreCandidate:
    """Test scoring of individual candidates."""

    def test_route_mismatch_scores_zero(self, engine):
        mock = MockDefinition(id=1, name='m', route='/a', method='GET')

        score, params = engine.score_candidate(mock, '/b', {}, {}, {})

        assert score.total_score == 0
        assert params == {}

    def test_disabled_scores_zero(self, engine):
        mock = MockDefinition(id=1, name='m', route='/a', method='GET', enabled=False)

        score, _ = engine.score_candidate(mock, '/a', {}, {}, {})

        assert score.total_score == 0

    def test_evaluator_error_disqualifies_candidate(self, registry, engine):
        """Test an evaluator exception drops only that candidate."""
        add_mock(registry, name='broken', route='/a', headers={'x': '*'})
        good = add_mock(registry, name='good', route='/a')

        def flaky(required, headers):
            if required:
                raise RuntimeError('boom')
            return evaluate_headers(required, headers)

        with patch('mockapi.mock.matcher.evaluate_headers', side_effect=flaky):
            result = engine.find_best_match('/a', 'GET', {'x': '1'}, {}, {})

        assert result.matched is True
        assert result.mock.id == good.id
