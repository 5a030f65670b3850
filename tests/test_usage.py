"""
Tests for mockapi Usage Log

Tests usage recording, statistics, retention and persistence.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from mockapi.registry import UsageLog


def record(usage, mock_id=1, method='GET', url='/users/1', elapsed_ms=4):
    return usage.record(
        mock_id,
        {'method': method, 'url': url, 'headers': {}, 'body': {}},
        {'status': 200, 'body': {'ok': True}},
        elapsed_ms
    )


class TestRecord:
    """Test recording entries."""

    def test_entry_fields(self):
        usage = UsageLog()

        entry = record(usage, mock_id=7)

        assert entry['mockId'] == 7
        assert entry['requestMethod'] == 'GET'
        assert entry['requestUrl'] == '/users/1'
        assert entry['responseStatus'] == 200
        assert entry['executionTimeMs'] == 4
        assert 'timestamp' in entry
        assert len(usage) == 1

    def test_limit_keeps_newest(self):
        usage = UsageLog(limit=3)

        for i in range(5):
            record(usage, url=f'/r{i}')

        assert len(usage) == 3
        assert [e['requestUrl'] for e in usage.entries] == ['/r2', '/r3', '/r4']


class TestStats:
    """Test usage statistics."""

    def test_empty(self):
        stats = UsageLog().stats()

        assert stats['recentRequests'] == 0
        assert stats['averageExecutionTime'] == '0ms'
        assert stats['popularRoutes'] == []

    def test_distribution_and_popular_routes(self):
        usage = UsageLog()
        record(usage, method='GET', url='/a', elapsed_ms=2)
        record(usage, method='GET', url='/a', elapsed_ms=4)
        record(usage, method='POST', url='/b', elapsed_ms=6)

        stats = usage.stats()

        assert stats['totalLogs'] == 3
        assert stats['recentRequests'] == 3
        assert stats['averageExecutionTime'] == '4ms'
        assert stats['methodDistribution'] == {'GET': 2, 'POST': 1}
        assert stats['popularRoutes'][0] == {'route': 'GET /a', 'count': 2}

    def test_recent_window(self):
        usage = UsageLog()
        for i in range(10):
            record(usage, url=f'/r{i}')

        assert usage.stats(recent=4)['recentRequests'] == 4


class TestRetention:
    """Test clearing old entries."""

    def test_clear_older_than(self):
        usage = UsageLog()
        record(usage, url='/new')
        old = record(usage, url='/old')
        old['timestamp'] = (datetime.now(timezone.utc) - timedelta(days=10)).isoformat()

        result = usage.clear_older_than(7)

        assert result['removedLogs'] == 1
        assert result['remainingLogs'] == 1
        assert [e['requestUrl'] for e in usage.entries] == ['/new']

    def test_unparseable_timestamp_is_removed(self):
        usage = UsageLog()
        record(usage)['timestamp'] = 'garbage'

        assert usage.clear_older_than(1)['removedLogs'] == 1

    @pytest.mark.parametrize('days', [0, -3])
    def test_days_must_be_positive(self, days):
        with pytest.raises(ValueError):
            UsageLog().clear_older_than(days)


class TestPersistence:
    """Test logs.json persistence."""

    def test_persist_and_reload(self, tmp_path):
        usage = UsageLog(data_dir=str(tmp_path))
        record(usage)

        assert len(json.loads((tmp_path / 'logs.json').read_text())) == 1
        assert len(UsageLog(data_dir=str(tmp_path))) == 1

    def test_corrupt_file_starts_empty(self, tmp_path):
        (tmp_path / 'logs.json').write_text('[oops')

        assert len(UsageLog(data_dir=str(tmp_path))) == 0
