#!/usr/bin/env python3
"""
mockapi CLI wrapper

Runs the mockapi command line from a source checkout without installing.

Examples:
    python3 mockapi-server.py serve --port 3000
    python3 mockapi-server.py validate mocks.yaml
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from mockapi.cli import main


if __name__ == '__main__':
    main()
