"""
mockapi Mock Server

FastAPI-based HTTP server that serves responses from registered mocks.

Features:
- Admin API for registering, updating, toggling and deleting mocks
- Catch-all dispatch: every other request is matched against the registry
  and answered with the winning mock's rendered response
- Usage log and statistics
- Health and metrics endpoints
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Dict, Any, Optional

import uvicorn
import yaml
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from .. import __version__
from ..common import MockFileLoader, flatten_query, parse_form_body, safe_json_parse
from ..registry import MockRegistry, UsageLog, MockNotFoundError, DuplicateMockError
from ..registry.models import utc_now_iso
from .generator import ResponseGenerator, RenderedResponse, SynthesisError
from .matcher import MatchingEngine, RequestContext
from .schemas import HTTP_METHODS, MockCreate, MockUpdate


@dataclass
class MockConfig:
    """Configuration for mock server behavior."""

    # Server options
    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "info"

    # Storage (None keeps mocks and usage log in memory)
    data_dir: Optional[str] = None
    seed_file: Optional[str] = None
    usage_log_limit: int = 1000

    # Admin API
    admin_enabled: bool = True
    admin_prefix: str = "/configure-mock"

    # Fallback behavior
    fallback_status: int = 404

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'MockConfig':
        """
        Build configuration from environment variables.

        Reads HOST, PORT, DB_PATH, LOG_LEVEL and MOCK_SEED_FILE.
        """
        env = os.environ if environ is None else environ
        config = cls()
        return replace(
            config,
            host=env.get('HOST', config.host),
            port=int(env.get('PORT', config.port)),
            data_dir=env.get('DB_PATH', config.data_dir),
            log_level=env.get('LOG_LEVEL', config.log_level),
            seed_file=env.get('MOCK_SEED_FILE', config.seed_file)
        )

    @classmethod
    def from_yaml(cls, yaml_file: str) -> 'MockConfig':
        """
        Load configuration from a YAML file.

        Args:
            yaml_file: Path to YAML file with MockConfig keys

        Returns:
            MockConfig

        Example YAML:
            host: 0.0.0.0
            port: 3000
            data_dir: ./database
            seed_file: ./mocks.yaml
            log_level: debug
        """
        with open(yaml_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {yaml_file}, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys in {yaml_file}: {', '.join(unknown)}")

        return cls(**data)

    def with_overrides(self, **overrides: Any) -> 'MockConfig':
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


@dataclass
class MockMetrics:
    """Track mock server metrics."""

    total_requests: int = 0
    matched_requests: int = 0
    unmatched_requests: int = 0
    failed_requests: int = 0
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def uptime_seconds(self) -> float:
        return (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'total_requests': self.total_requests,
            'matched_requests': self.matched_requests,
            'unmatched_requests': self.unmatched_requests,
            'failed_requests': self.failed_requests,
            'match_rate': round((self.matched_requests / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'uptime_seconds': round(self.uptime_seconds, 2),
            'start_time': self.start_time
        }


def _is_json_content_type(content_type: str) -> bool:
    media_type = content_type.split(';')[0].strip().lower()
    return media_type == 'application/json' or media_type.endswith('+json')


def _allows_body(status_code: int) -> bool:
    """1xx, 204 and 304 responses must not carry a body."""
    return status_code >= 200 and status_code not in (204, 304)


def _header_safe(value: str) -> str:
    """Header values must be latin-1 encodable."""
    return value.encode('latin-1', 'replace').decode('latin-1')


def _error_response(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    content = {'error': error, 'message': message}
    content.update(extra)
    content['timestamp'] = utc_now_iso()
    return JSONResponse(status_code=status_code, content=content)


def _parse_mock_id(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except ValueError:
        return None


class MockServer:
    """
    FastAPI-based mock server for serving registered mocks.

    Mocks are registered at runtime through the admin API (or loaded from a
    seed file) and every other request is answered by the best-matching mock.

    Example:
        # In-memory server
        server = MockServer()
        server.start(port=3000)

        # Persistent server with seed mocks
        config = MockConfig(data_dir='./database', seed_file='mocks.yaml')
        server = MockServer(config=config)
        server.start()
    """

    def __init__(
        self,
        config: Optional[MockConfig] = None,
        registry: Optional[MockRegistry] = None,
        usage_log: Optional[UsageLog] = None
    ):
        """
        Initialize mock server.

        Args:
            config: Optional MockConfig for server behavior
            registry: Optional MockRegistry instance (will create if None)
            usage_log: Optional UsageLog instance (will create if None)
        """
        self.config = config or MockConfig()
        self.metrics = MockMetrics()

        # Setup logging first (before loading mocks)
        self.logger = logging.getLogger("mockapi.server")
        logging.getLogger("mockapi").setLevel(getattr(logging, self.config.log_level.upper()))

        self.registry = registry if registry is not None else MockRegistry(self.config.data_dir)
        self.usage_log = usage_log if usage_log is not None else UsageLog(
            self.config.data_dir, limit=self.config.usage_log_limit
        )

        if self.config.seed_file:
            self._load_seed_file(self.config.seed_file)

        self.engine = MatchingEngine(self.registry)
        self.generator = ResponseGenerator()

        # Setup FastAPI app
        self.app = self._create_app()

    def _load_seed_file(self, seed_file: str):
        """Register mocks from a JSON/YAML seed file."""
        definitions = MockFileLoader.load_from_file(seed_file)
        created = self.registry.load_definitions(definitions)
        self.logger.info(f"Loaded {created} of {len(definitions)} mocks from {seed_file}")

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title="mockapi",
            description="Configurable HTTP mock server",
            version=__version__
        )
        prefix = self.config.admin_prefix

        @app.exception_handler(RequestValidationError)
        async def validation_error(request: Request, exc: RequestValidationError):
            """Render validation failures as 400 with per-field details."""
            details = []
            for error in exc.errors():
                loc = list(error.get('loc', ()))
                if loc and loc[0] in ('body', 'query', 'path'):
                    loc = loc[1:]
                details.append({
                    'field': '.'.join(str(part) for part in loc),
                    'message': error.get('msg', '')
                })
            return _error_response(400, 'Validation Error', 'Invalid mock configuration', details=details)

        @app.get("/")
        async def info():
            """Service information."""
            endpoints = {
                'health': 'GET /health',
                'info': 'GET /',
                'stats': 'GET /mock-stats',
                'clearLogs': 'DELETE /mock-logs?days=N'
            }
            if self.config.admin_enabled:
                endpoints.update({
                    'createMock': f'POST {prefix}',
                    'listMocks': f'GET {prefix}',
                    'getMock': f'GET {prefix}/:id',
                    'updateMock': f'PUT {prefix}/:id',
                    'toggleMock': f'PATCH {prefix}/:id/toggle',
                    'deleteMock': f'DELETE {prefix}/:id'
                })
            return {
                'name': 'mockapi',
                'version': __version__,
                'description': 'HTTP mock server with runtime configuration',
                'endpoints': endpoints
            }

        @app.get("/health")
        async def health():
            """Health check with registry statistics."""
            return {
                'status': 'OK',
                'message': 'Mock API is running!',
                'timestamp': utc_now_iso(),
                'uptime': round(self.metrics.uptime_seconds, 2),
                'database': self._database_stats()
            }

        @app.get("/mock-stats")
        async def mock_stats():
            """Registry, usage and server statistics."""
            stats = self._database_stats()
            stats.update(self.usage_log.stats())
            return {
                'message': 'Mock statistics retrieved successfully',
                'stats': stats,
                'server': self.metrics.to_dict(),
                'timestamp': utc_now_iso()
            }

        @app.delete("/mock-logs")
        async def clear_logs(days: int = 7):
            """Remove usage entries older than `days` days."""
            try:
                result = self.usage_log.clear_older_than(days)
            except ValueError as e:
                return _error_response(400, 'Bad Request', str(e))
            return {
                'message': 'Old logs cleared successfully',
                **result,
                'timestamp': utc_now_iso()
            }

        # Admin API routes
        if self.config.admin_enabled:
            @app.post(prefix, status_code=201)
            async def create_mock(payload: MockCreate):
                """Register a new mock."""
                try:
                    mock = self.registry.create(payload.model_dump())
                except DuplicateMockError as e:
                    self.logger.warning(f"Rejected duplicate mock: {e}")
                    return _error_response(409, 'Conflict', str(e), existingMock=e.existing.to_dict())
                return {
                    'message': 'Mock configuration created successfully',
                    'mock': mock.to_dict(),
                    'timestamp': utc_now_iso()
                }

            @app.get(prefix)
            async def list_mocks(page: int = 1, limit: int = 10, enabled: Optional[str] = None):
                """List mocks, newest first."""
                enabled_filter = None if enabled is None else enabled.lower() == 'true'
                result = self.registry.list(page=page, limit=limit, enabled=enabled_filter)
                return {
                    'message': 'Mock configurations retrieved successfully',
                    'mocks': [m.to_dict() for m in result['data']],
                    'pagination': result['pagination'],
                    'timestamp': utc_now_iso()
                }

            @app.get(prefix + "/{mock_id}")
            async def get_mock(mock_id: str):
                """Get one mock."""
                parsed = _parse_mock_id(mock_id)
                if parsed is None:
                    return _error_response(400, 'Bad Request', 'Invalid mock ID')
                mock = self.registry.get(parsed)
                if mock is None:
                    return _error_response(404, 'Not Found', str(MockNotFoundError(parsed)))
                return {
                    'message': 'Mock configuration retrieved successfully',
                    'mock': mock.to_dict(),
                    'timestamp': utc_now_iso()
                }

            @app.put(prefix + "/{mock_id}")
            async def update_mock(mock_id: str, payload: MockUpdate):
                """Partially update a mock."""
                parsed = _parse_mock_id(mock_id)
                if parsed is None:
                    return _error_response(400, 'Bad Request', 'Invalid mock ID')
                try:
                    mock = self.registry.update(parsed, payload.model_dump(exclude_unset=True))
                except MockNotFoundError as e:
                    return _error_response(404, 'Not Found', str(e))
                return {
                    'message': 'Mock configuration updated successfully',
                    'mock': mock.to_dict(),
                    'timestamp': utc_now_iso()
                }

            @app.patch(prefix + "/{mock_id}/toggle")
            async def toggle_mock(mock_id: str):
                """Enable or disable a mock."""
                parsed = _parse_mock_id(mock_id)
                if parsed is None:
                    return _error_response(400, 'Bad Request', 'Invalid mock ID')
                try:
                    mock = self.registry.toggle(parsed)
                except MockNotFoundError as e:
                    return _error_response(404, 'Not Found', str(e))
                state = 'enabled' if mock.enabled else 'disabled'
                return {
                    'message': f'Mock {state} successfully',
                    'mock': mock.to_dict(),
                    'timestamp': utc_now_iso()
                }

            @app.delete(prefix + "/{mock_id}")
            async def delete_mock(mock_id: str):
                """Delete a mock."""
                parsed = _parse_mock_id(mock_id)
                if parsed is None:
                    return _error_response(400, 'Bad Request', 'Invalid mock ID')
                if not self.registry.delete(parsed):
                    return _error_response(404, 'Not Found', str(MockNotFoundError(parsed)))
                return {
                    'message': 'Mock configuration deleted successfully',
                    'deletedId': parsed,
                    'timestamp': utc_now_iso()
                }

        # Catch-all mock route (must be last)
        @app.api_route("/{path:path}", methods=list(HTTP_METHODS))
        async def mock_request(request: Request, path: str):
            """Handle incoming requests and serve mock responses."""
            return await self._handle_request(request)

        return app

    def _database_stats(self) -> Dict[str, Any]:
        stats = self.registry.stats()
        stats['totalLogs'] = len(self.usage_log)
        return stats

    async def _handle_request(self, request: Request) -> Response:
        """
        Match an incoming request and serve the winning mock's response.

        Args:
            request: FastAPI Request object

        Returns:
            FastAPI Response (mock response, 404 when nothing matched, 500 on
            render failure)
        """
        start_time = time.perf_counter()
        self.metrics.total_requests += 1

        method = request.method
        path = request.url.path
        headers = {k.lower(): v for k, v in request.headers.items()}
        query = flatten_query(request.query_params.multi_items())
        body = self._parse_body(await request.body(), headers.get('content-type', ''))

        self.logger.debug(f"Incoming: {method} {path}")

        result = self.engine.find_best_match(path, method, headers, body, query)
        if not result.matched:
            self.metrics.unmatched_requests += 1
            self.logger.warning(f"No mock found for {method} {path}: {result.reason}")
            return _error_response(
                self.config.fallback_status,
                'Mock Not Found',
                f"No mock configuration found for {method} {path}",
                suggestion=f"Create a mock configuration using POST {self.config.admin_prefix}"
            )

        mock = result.mock
        context = RequestContext(
            method=method,
            path=path,
            headers=headers,
            body=body,
            query=query,
            url_params=result.url_params
        )

        try:
            rendered = self.generator.render(mock, context)
        except SynthesisError as e:
            self.metrics.failed_requests += 1
            self.logger.exception(f"Error executing mock {mock.id} for {method} {path}")
            return _error_response(
                500,
                'Mock Execution Error',
                'An error occurred while executing the mock',
                details=str(e),
                executionTime=f"{self._elapsed_ms(start_time)}ms"
            )

        self.metrics.matched_requests += 1
        elapsed_ms = self._elapsed_ms(start_time)

        # Usage log is written after the response is sent
        usage_task = BackgroundTask(
            self.usage_log.record,
            mock.id,
            {'method': method, 'url': path, 'headers': headers, 'body': body},
            {'status': rendered.status_code, 'body': rendered.body},
            elapsed_ms
        )

        return Response(
            content=self._encode_body(rendered) if _allows_body(rendered.status_code) else None,
            status_code=rendered.status_code,
            media_type=rendered.content_type,
            headers={
                'X-Mock-Id': str(mock.id),
                'X-Mock-Name': _header_safe(mock.name),
                'X-Execution-Time': f"{elapsed_ms}ms"
            },
            background=usage_task
        )

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return round((time.perf_counter() - start_time) * 1000)

    @staticmethod
    def _parse_body(raw: bytes, content_type: str) -> Any:
        """Parse a request body as form data or JSON; anything else is {}."""
        if not raw:
            return {}
        if 'application/x-www-form-urlencoded' in content_type.lower():
            return parse_form_body(raw)
        return safe_json_parse(raw, default={})

    @staticmethod
    def _encode_body(rendered: RenderedResponse) -> str:
        """JSON-encode the body unless it is text for a non-JSON content type."""
        if isinstance(rendered.body, str) and not _is_json_content_type(rendered.content_type):
            return rendered.body
        return json.dumps(rendered.body, default=str)

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = True
    ):
        """
        Start the mock server.

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print(f"🚀 mockapi server starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Mocks loaded: {len(self.registry.all())}")
        print(f"   Storage: {self.config.data_dir or 'in-memory'}")

        if self.config.admin_enabled:
            print(f"   Admin API: http://{actual_host}:{actual_port}{self.config.admin_prefix}")

        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level.lower(),
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_mock_server(
    host: str = "127.0.0.1",
    port: int = 3000,
    data_dir: Optional[str] = None,
    seed_file: Optional[str] = None,
    log_level: str = "info",
    admin_enabled: bool = True
) -> MockServer:
    """
    Convenience function to create and configure a mock server.

    Args:
        host: Host to bind to
        port: Port to bind to
        data_dir: Directory for mocks.json and logs.json (None = in-memory)
        seed_file: JSON/YAML file of mocks to register at startup
        log_level: Logging level name
        admin_enabled: Expose the admin API

    Returns:
        Configured MockServer instance

    Example:
        server = create_mock_server(port=3000, seed_file='mocks.yaml')
        server.start()
    """
    config = MockConfig(
        host=host,
        port=port,
        data_dir=data_dir,
        seed_file=seed_file,
        log_level=log_level,
        admin_enabled=admin_enabled
    )

    return MockServer(config=config)
