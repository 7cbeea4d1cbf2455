"""
API Specs Runner Module

Variable resolution, request preparation and HTTP execution for
Postman collections.

This module provides:
- Layered {{variable}} substitution with cycle detection
- Auth inheritance and body encoding
- Ordered, optionally concurrent execution with per-request failure capture
"""

from .config import RunConfig, ConfigError
from .executor import RequestExecutor, CancellationToken
from .models import ResolvedRequest, RequestLog, RunResult
from .preparer import RequestPreparer, prepare_requests
from .variables import (
    VariableIssue, VariableMap, build_scopes, collect_secrets, resolve,
    resolve_with_issues
)

__all__ = [
    'RunConfig',
    'ConfigError',
    'RequestExecutor',
    'CancellationToken',
    'ResolvedRequest',
    'RequestLog',
    'RunResult',
    'RequestPreparer',
    'prepare_requests',
    'VariableIssue',
    'VariableMap',
    'build_scopes',
    'collect_secrets',
    'resolve',
    'resolve_with_issues',
]
