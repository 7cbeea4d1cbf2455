#!/usr/bin/env python3
"""
API Specs - Postman collection runner and OpenAPI generator

This is a convenience wrapper that calls the packaged CLI.
The actual implementation is in src/apispecs/cli.py

Usage:
    python api-specs.py generate collection.json --env staging.json -o openapi.yaml

Run with --help for all commands and options.
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from apispecs.cli import main

if __name__ == '__main__':
    main()
