"""
Tests for mockapi Criterion Evaluators

Tests the per-kind requirement checks:
- Header presence, wildcard, glob and exact values
- URL parameter constraints
- Body parameter constraints
- Dot-path conditions
"""

import pytest

from mockapi.mock.criteria import (
    Constraint,
    ConstraintKind,
    evaluate_headers,
    evaluate_url_params,
    evaluate_body_params,
    evaluate_conditions,
    build_condition_view,
    HEADER_WILDCARD_WEIGHT,
    HEADER_PATTERN_WEIGHT,
    HEADER_EXACT_WEIGHT,
    URL_REQUIRED_WEIGHT,
    URL_NUMBER_WEIGHT,
    URL_LITERAL_WEIGHT,
    BODY_REQUIRED_WEIGHT,
    BODY_LITERAL_WEIGHT,
    CONDITION_WEIGHT
)


class TestConstraint:
    """Test constraint tag parsing."""

    def test_parse_required(self):
        assert Constraint.parse('required').kind is ConstraintKind.REQUIRED

    def test_parse_number(self):
        assert Constraint.parse('number').kind is ConstraintKind.NUMBER

    def test_number_is_literal_for_body(self):
        """Test 'number' is a plain literal where numeric checks don't apply."""
        constraint = Constraint.parse('number', allow_number=False)

        assert constraint.kind is ConstraintKind.LITERAL
        assert constraint.value == 'number'

    def test_parse_literal(self):
        constraint = Constraint.parse(42)

        assert constraint.kind is ConstraintKind.LITERAL
        assert constraint.value == 42


class TestEvaluateHeaders:
    """Test header requirements."""

    def test_no_requirements(self):
        """Test empty requirements are trivially satisfied."""
        result = evaluate_headers({}, {'x-any': '1'})

        assert result.satisfied is True
        assert result.weight == 0

    def test_exact_value(self):
        result = evaluate_headers({'x-api-key': 'secret'}, {'x-api-key': 'secret'})

        assert result.satisfied is True
        assert result.weight == HEADER_EXACT_WEIGHT

    def test_name_lookup_is_case_insensitive(self):
        """Test header names compare case-insensitively."""
        result = evaluate_headers({'X-Api-Key': 'secret'}, {'x-api-key': 'secret'})

        assert result.satisfied is True

    def test_wildcard_accepts_any_value(self):
        result = evaluate_headers({'authorization': '*'}, {'authorization': 'Bearer abc'})

        assert result.satisfied is True
        assert result.weight == HEADER_WILDCARD_WEIGHT

    def test_glob_pattern(self):
        """Test '*' inside a value matches any run of characters."""
        result = evaluate_headers({'authorization': 'Bearer *'}, {'authorization': 'bearer abc.def'})

        assert result.satisfied is True
        assert result.weight == HEADER_PATTERN_WEIGHT

    def test_glob_pattern_must_fully_match(self):
        result = evaluate_headers({'accept': 'application/*'}, {'accept': 'text/html'})

        assert result.satisfied is False

    def test_glob_pattern_escapes_regex(self):
        """Test glob patterns treat regex metacharacters literally."""
        assert evaluate_headers({'x-v': '1.*'}, {'x-v': '1.5'}).satisfied is True
        assert evaluate_headers({'x-v': '1.*'}, {'x-v': '105'}).satisfied is False

    def test_missing_header_disqualifies(self):
        result = evaluate_headers({'x-api-key': 'secret'}, {})

        assert result.satisfied is False
        assert 'x-api-key' in result.reason

    def test_empty_header_counts_as_missing(self):
        assert evaluate_headers({'x-token': '*'}, {'x-token': ''}).satisfied is False

    def test_wrong_value_disqualifies(self):
        assert evaluate_headers({'x-api-key': 'secret'}, {'x-api-key': 'other'}).satisfied is False

    def test_weights_accumulate(self):
        result = evaluate_headers(
            {'a': '*', 'b': 'x*', 'c': 'exact'},
            {'a': '1', 'b': 'xyz', 'c': 'exact'}
        )

        assert result.weight == HEADER_WILDCARD_WEIGHT + HEADER_PATTERN_WEIGHT + HEADER_EXACT_WEIGHT


class TestEvaluateUrlParams:
    """Test URL parameter constraints."""

    def test_required(self):
        result = evaluate_url_params({'id': 'required'}, {'id': 'abc'})

        assert result.satisfied is True
        assert result.weight == URL_REQUIRED_WEIGHT

    def test_missing_param_disqualifies(self):
        assert evaluate_url_params({'id': 'required'}, {}).satisfied is False

    @pytest.mark.parametrize('value', ['42', '-3', '1.5', '.5', '1e3', '0x1A', 'Infinity'])
    def test_number_accepts_numeric(self, value):
        result = evaluate_url_params({'id': 'number'}, {'id': value})

        assert result.satisfied is True
        assert result.weight == URL_NUMBER_WEIGHT

    @pytest.mark.parametrize('value', ['abc', '12abc', 'nan', 'NaN', 'inf', '1_000', '-0x1A'])
    def test_number_rejects_non_numeric(self, value):
        assert evaluate_url_params({'id': 'number'}, {'id': value}).satisfied is False

    def test_literal(self):
        result = evaluate_url_params({'kind': 'admin'}, {'kind': 'admin'})

        assert result.satisfied is True
        assert result.weight == URL_LITERAL_WEIGHT

    def test_literal_mismatch(self):
        assert evaluate_url_params({'kind': 'admin'}, {'kind': 'user'}).satisfied is False

    def test_non_string_literal_compares_as_text(self):
        """Test stored numeric literals compare to the path segment text."""
        assert evaluate_url_params({'id': 5}, {'id': '5'}).satisfied is True


class TestEvaluateBodyParams:
    """Test body parameter constraints."""

    def test_required_present(self):
        result = evaluate_body_params({'email': 'required'}, {'email': 'a@b.c'})

        assert result.satisfied is True
        assert result.weight == BODY_REQUIRED_WEIGHT

    @pytest.mark.parametrize('body', [{}, {'email': None}, {'email': ''}])
    def test_required_absent_or_empty(self, body):
        assert evaluate_body_params({'email': 'required'}, body).satisfied is False

    def test_required_accepts_falsy_non_empty_values(self):
        """Test 0 and False count as present."""
        assert evaluate_body_params({'n': 'required', 'b': 'required'}, {'n': 0, 'b': False}).satisfied is True

    def test_literal(self):
        result = evaluate_body_params({'type': 'premium'}, {'type': 'premium'})

        assert result.satisfied is True
        assert result.weight == BODY_LITERAL_WEIGHT

    def test_literal_is_type_sensitive(self):
        """Test literal equality distinguishes strings from numbers."""
        assert evaluate_body_params({'count': 1}, {'count': '1'}).satisfied is False
        assert evaluate_body_params({'count': 1}, {'count': 1}).satisfied is True
        assert evaluate_body_params({'flag': True}, {'flag': 1}).satisfied is False

    def test_non_mapping_body_has_no_fields(self):
        assert evaluate_body_params({'id': 'required'}, ['id']).satisfied is False


class TestEvaluateConditions:
    """Test dot-path conditions."""

    def _view(self, body=None, query=None, headers=None, url_params=None):
        return build_condition_view(headers or {}, body or {}, query or {}, url_params or {})

    def test_nested_body_path(self):
        result = evaluate_conditions(
            {'body.user.type': 'premium'},
            self._view(body={'user': {'type': 'premium'}})
        )

        assert result.satisfied is True
        assert result.weight == CONDITION_WEIGHT

    def test_mismatch_disqualifies(self):
        assert evaluate_conditions({'body.type': 'premium'}, self._view(body={'type': 'basic'})).satisfied is False

    def test_missing_path_disqualifies(self):
        result = evaluate_conditions({'body.user.type': 'premium'}, self._view(body={'user': None}))

        assert result.satisfied is False
        assert 'not found' in result.reason

    def test_query_header_and_url_param_paths(self):
        view = self._view(query={'page': '2'}, headers={'x-tenant': 'acme'}, url_params={'id': '9'})
        conditions = {'query.page': '2', 'headers.x-tenant': 'acme', 'urlParams.id': '9'}

        result = evaluate_conditions(conditions, view)

        assert result.satisfied is True
        assert result.weight == 3 * CONDITION_WEIGHT

    def test_type_sensitive(self):
        assert evaluate_conditions({'query.page': 2}, self._view(query={'page': '2'})).satisfied is False

    def test_null_expected_value(self):
        """Test a present null value equals an expected null."""
        assert evaluate_conditions({'body.deletedAt': None}, self._view(body={'deletedAt': None})).satisfied is True
