"""
mockapi Usage Log

Records which mock served each request and summarises recent traffic.
"""

import json
import logging
import threading
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional

from .models import utc_now_iso


logger = logging.getLogger("mockapi.registry")

DEFAULT_LOG_LIMIT = 1000


class UsageLog:
    """
    Bounded log of served mock requests.

    Only the newest `limit` entries are kept. With a data directory the log is
    mirrored to <data_dir>/logs.json after every write.

    Example:
        usage = UsageLog(data_dir='./database')
        usage.record(1, {'method': 'GET', 'url': '/users/1'}, {'status': 200, 'body': {}}, 3)
        print(usage.stats()['averageExecutionTime'])
    """

    def __init__(self, data_dir: Optional[str] = None, limit: int = DEFAULT_LOG_LIMIT):
        """
        Initialize usage log.

        Args:
            data_dir: Directory for logs.json (None keeps entries in memory)
            limit: Maximum number of entries kept
        """
        self._lock = threading.Lock()
        self.limit = limit
        self.entries: List[Dict[str, Any]] = []

        self.data_dir = Path(data_dir) if data_dir else None
        self.logs_file = self.data_dir / 'logs.json' if self.data_dir else None

        if self.logs_file and self.logs_file.exists():
            try:
                content = self.logs_file.read_text(encoding='utf-8').strip()
                self.entries = (json.loads(content) if content else [])[-self.limit:]
            except (json.JSONDecodeError, TypeError) as e:
                logger.error(f"Could not read {self.logs_file} ({e}), starting with an empty usage log")
                self.entries = []

    def _save(self):
        if not self.logs_file:
            return
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.logs_file.write_text(json.dumps(self.entries, indent=2, default=str), encoding='utf-8')

    def record(
        self,
        mock_id: int,
        request_summary: Dict[str, Any],
        response_summary: Dict[str, Any],
        elapsed_ms: float
    ) -> Dict[str, Any]:
        """
        Record one served request.

        Args:
            mock_id: Id of the mock that served the request
            request_summary: {'method', 'url', 'headers', 'body'}
            response_summary: {'status', 'body'}
            elapsed_ms: Time spent serving the request

        Returns:
            The stored entry
        """
        entry = {
            'id': time.time_ns(),
            'mockId': int(mock_id),
            'requestMethod': request_summary.get('method'),
            'requestUrl': request_summary.get('url'),
            'requestHeaders': request_summary.get('headers'),
            'requestBody': request_summary.get('body'),
            'responseStatus': response_summary.get('status'),
            'responseBody': response_summary.get('body'),
            'executionTimeMs': elapsed_ms,
            'timestamp': utc_now_iso()
        }

        with self._lock:
            self.entries.append(entry)
            if len(self.entries) > self.limit:
                self.entries = self.entries[-self.limit:]
            try:
                self._save()
            except OSError as e:
                logger.error(f"Failed to persist usage log: {e}")

        return entry

    def __len__(self) -> int:
        return len(self.entries)

    def stats(self, recent: int = 100) -> Dict[str, Any]:
        """
        Summarise the most recent entries.

        Args:
            recent: Number of newest entries to consider

        Returns:
            Dict with recentRequests, averageExecutionTime, methodDistribution
            and popularRoutes (top 10)
        """
        with self._lock:
            recent_entries = self.entries[-recent:]

        methods = Counter(e.get('requestMethod') for e in recent_entries)
        routes = Counter(f"{e.get('requestMethod')} {e.get('requestUrl')}" for e in recent_entries)
        total_time = sum(e.get('executionTimeMs') or 0 for e in recent_entries)
        average = round(total_time / len(recent_entries)) if recent_entries else 0

        return {
            'totalLogs': len(self.entries),
            'recentRequests': len(recent_entries),
            'averageExecutionTime': f"{average}ms",
            'methodDistribution': dict(methods),
            'popularRoutes': [
                {'route': route, 'count': count}
                for route, count in routes.most_common(10)
            ]
        }

    def clear_older_than(self, days: int) -> Dict[str, Any]:
        """
        Drop entries older than `days` days.

        Raises:
            ValueError: If days < 1
        """
        if days < 1:
            raise ValueError("Days parameter must be greater than 0")

        cutoff = datetime.now(timezone.utc) - timedelta(days=days)

        with self._lock:
            initial = len(self.entries)
            self.entries = [e for e in self.entries if _parse_timestamp(e.get('timestamp')) > cutoff]
            removed = initial - len(self.entries)
            self._save()

        logger.info(f"Cleared {removed} usage entries older than {days} days")
        return {
            'removedLogs': removed,
            'remainingLogs': len(self.entries),
            'cutoffDate': cutoff.isoformat()
        }


def _parse_timestamp(value: Optional[str]) -> datetime:
    """Parse a stored timestamp; unparseable values sort as oldest."""
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
