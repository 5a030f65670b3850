"""
mockapi CLI

Command-line interface for the mockapi mock server.

Commands:
    serve       - Start the mock HTTP server
    validate    - Validate a JSON/YAML file of mock definitions
    match       - Dry-run the matching engine against a mock file

Examples:
    # Start an in-memory server on port 3000
    mockapi serve --port 3000

    # Persist mocks and seed them from a file
    mockapi serve --data-dir ./database --seed mocks.yaml

    # Check which mock would answer a request
    mockapi match mocks.yaml GET /users/42 --header x-api-key=secret
"""

import argparse
import json
import logging
import sys
from typing import List, Dict, Optional

from pydantic import ValidationError

from . import __version__
from .common import MockFileLoader, flatten_query, safe_json_parse
from .mock.generator import ResponseGenerator, SynthesisError
from .mock.matcher import MatchingEngine, RequestContext
from .mock.routes import compile_route
from .mock.schemas import MockCreate
from .mock.server import MockServer, MockConfig
from .registry import MockRegistry
from .registry.store import strip_stored_fields


def _parse_pairs(pairs: Optional[List[str]]) -> List[tuple]:
    """Split KEY=VALUE arguments into (key, value) pairs."""
    parsed = []
    for pair in pairs or []:
        if '=' not in pair:
            raise ValueError(f"Expected KEY=VALUE, got: {pair}")
        key, value = pair.split('=', 1)
        parsed.append((key, value))
    return parsed


def _load_definitions(mock_file: str) -> List[Dict]:
    try:
        return MockFileLoader.load_from_file(mock_file)
    except (OSError, ValueError) as e:
        print(f"❌ Failed to load mocks: {e}")
        sys.exit(1)


def cmd_serve(args):
    """
    Start the mock HTTP server.

    Args:
        args: Parsed command-line arguments
    """
    print(f"🎭 mockapi server")

    try:
        config = MockConfig.from_yaml(args.config) if args.config else MockConfig.from_env()
    except (OSError, ValueError) as e:
        print(f"❌ Failed to load configuration: {e}")
        sys.exit(1)

    config = config.with_overrides(
        host=args.host,
        port=args.port,
        data_dir=args.data_dir,
        seed_file=args.seed,
        log_level=args.log_level,
        admin_enabled=False if args.no_admin else None
    )

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    try:
        server = MockServer(config=config)
    except (OSError, KeyError, TypeError, ValueError) as e:
        print(f"❌ Failed to start server: {e}")
        sys.exit(1)

    server.start()


def cmd_validate(args):
    """
    Validate a file of mock definitions and report issues.

    Args:
        args: Parsed command-line arguments
    """
    print(f"✓ mockapi Mock Validation")
    print(f"   Mock file: {args.mock_file}")

    definitions = _load_definitions(args.mock_file)

    print(f"   Total mocks: {len(definitions)}")
    print()

    errors = []
    warnings = []
    seen = {}

    for i, data in enumerate(definitions):
        label = f"Mock {i} ({data.get('name', 'unnamed')})" if isinstance(data, dict) else f"Mock {i}"
        try:
            mock = MockCreate.model_validate(strip_stored_fields(data))
        except ValidationError as e:
            for error in e.errors():
                field = '.'.join(str(part) for part in error.get('loc', ()))
                errors.append(f"{label}: {field or 'mock'}: {error.get('msg', '')}")
            continue

        _, param_names = compile_route(mock.route)
        if len(set(param_names)) != len(param_names):
            warnings.append(f"{label}: Route {mock.route} repeats a parameter name")

        for name in mock.urlParams:
            if name not in param_names:
                warnings.append(f"{label}: urlParams '{name}' is not a parameter of {mock.route}")

        key = (mock.method, mock.route, json.dumps(
            [mock.headers, mock.urlParams, mock.bodyParams, mock.conditions], sort_keys=True, default=str
        ))
        if mock.enabled and key in seen:
            warnings.append(f"{label}: Duplicates mock {seen[key]} and will be skipped")
        seen.setdefault(key, i)

    # Report results
    if errors:
        print("❌ Errors found:")
        for error in errors:
            print(f"   • {error}")
        print()

    if warnings:
        print("⚠️  Warnings:")
        for warning in warnings:
            print(f"   • {warning}")
        print()

    if not errors and not warnings:
        print("✅ All mocks are valid")

    if errors:
        sys.exit(1)


def cmd_match(args):
    """
    Show which mock would answer a request, and what it would return.

    Args:
        args: Parsed command-line arguments
    """
    definitions = _load_definitions(args.mock_file)

    try:
        headers = {k.lower(): v for k, v in _parse_pairs(args.header)}
        query = flatten_query(_parse_pairs(args.query))
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    body = {}
    if args.body:
        body = safe_json_parse(args.body)
        if body is None:
            print(f"❌ --body is not valid JSON")
            sys.exit(1)

    registry = MockRegistry()
    loaded = registry.load_definitions(definitions)
    if loaded < len(definitions):
        print(f"⚠️  Skipped {len(definitions) - loaded} invalid or duplicate mocks (run 'validate' for details)")

    path = args.path.split('?')[0]
    method = args.method.upper()
    result = MatchingEngine(registry).find_best_match(path, method, headers, body, query)

    print(f"🔍 {method} {path}")
    if not result.matched:
        print(f"✗ No match: {result.reason}")
        sys.exit(1)

    print(f"✓ Matched: {result.mock.name} (id: {result.mock.id}, score: {result.score.total_score})")
    print(f"   Score breakdown: {json.dumps(result.score.to_dict())}")
    if result.url_params:
        print(f"   URL params: {json.dumps(result.url_params)}")

    context = RequestContext(
        method=method,
        path=path,
        headers=headers,
        body=body,
        query=query,
        url_params=result.url_params
    )
    try:
        rendered = ResponseGenerator().render(result.mock, context)
    except SynthesisError as e:
        print(f"❌ {e}")
        sys.exit(1)

    print(f"   Status: {rendered.status_code}")
    print(f"   Content-Type: {rendered.content_type}")
    print(json.dumps(rendered.body, indent=2, default=str))


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='mockapi',
        description="mockapi - Configurable HTTP mock server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the server with persistent storage
  %(prog)s serve --data-dir ./database --port 3000

  # Validate a mock file
  %(prog)s validate mocks.yaml

  # Dry-run a request against a mock file
  %(prog)s match mocks.yaml POST /orders --body '{"type": "premium"}'
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start the mock HTTP server')
    serve_parser.add_argument('--host', help='Host to bind to (default: 127.0.0.1 or $HOST)')
    serve_parser.add_argument('-p', '--port', type=int, help='Port to bind to (default: 3000 or $PORT)')
    serve_parser.add_argument('-d', '--data-dir', help='Directory for mocks.json and logs.json (default: in-memory)')
    serve_parser.add_argument('--seed', help='JSON/YAML file of mocks to register at startup')
    serve_parser.add_argument('-c', '--config', help='YAML configuration file')
    serve_parser.add_argument('--log-level', choices=['debug', 'info', 'warning', 'error'],
                              help='Logging level (default: info)')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable the admin API')

    # --- VALIDATE command ---
    validate_parser = subparsers.add_parser('validate', help='Validate a file of mock definitions')
    validate_parser.add_argument('mock_file', help='JSON/YAML file of mock definitions')

    # --- MATCH command ---
    match_parser = subparsers.add_parser('match', help='Dry-run the matching engine')
    match_parser.add_argument('mock_file', help='JSON/YAML file of mock definitions')
    match_parser.add_argument('method', help='HTTP method')
    match_parser.add_argument('path', help='Request path')
    match_parser.add_argument('-H', '--header', action='append', help='Request header (KEY=VALUE, repeatable)')
    match_parser.add_argument('-q', '--query', action='append', help='Query parameter (KEY=VALUE, repeatable)')
    match_parser.add_argument('-b', '--body', help='JSON request body')

    # Parse arguments
    args = parser.parse_args(argv)

    # Dispatch to command handler
    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'validate':
        cmd_validate(args)
    elif args.command == 'match':
        cmd_match(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
