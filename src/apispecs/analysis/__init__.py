"""
API Specs Analysis Module

Endpoint grouping, path normalization and schema unification over
observed request/response pairs.
"""

from .analyzer import (
    Endpoint, EndpointAnalyzer, EndpointModel, ExchangeExample, ParameterModel,
    analyze, parse_body
)
from .paths import PathObservation, normalize_paths
from .schema import EMPTY, Kind, SchemaNode, unify

__all__ = [
    'Endpoint',
    'EndpointAnalyzer',
    'EndpointModel',
    'ExchangeExample',
    'ParameterModel',
    'analyze',
    'parse_body',
    'PathObservation',
    'normalize_paths',
    'EMPTY',
    'Kind',
    'SchemaNode',
    'unify',
]
