"""
API Specs

Run Postman collections against live services and infer an OpenAPI 3.0
document or a HAR trace from the observed traffic.
"""

__version__ = '1.0.0'

from .errors import (
    ApiSpecsError, CollectionLoadError, DocumentReadError, IssueKind,
    MalformedCollection, MalformedEnvironment, SpecGenerationError,
    UnsupportedOutputFormat, UnsupportedSchemaVersion
)
from .runner import CancellationToken, RunConfig, RunResult
from .orchestrator import (
    GenerateResponse, SpecPipeline, generate_spec, run_collection, save_file,
    validate_collection
)

__all__ = [
    '__version__',
    'ApiSpecsError',
    'CollectionLoadError',
    'DocumentReadError',
    'IssueKind',
    'MalformedCollection',
    'MalformedEnvironment',
    'SpecGenerationError',
    'UnsupportedOutputFormat',
    'UnsupportedSchemaVersion',
    'CancellationToken',
    'RunConfig',
    'RunResult',
    'GenerateResponse',
    'SpecPipeline',
    'generate_spec',
    'run_collection',
    'save_file',
    'validate_collection',
]
