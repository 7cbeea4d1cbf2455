"""
API Specs Orchestrator

The boundary operations a presentation layer calls: validate a
collection, run it, or run it and generate an OpenAPI/HAR document.
Each call builds a fresh SpecPipeline, so nothing is shared between runs.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import requests

from .analysis import analyze
from .collection import Collection, Environment, load_collection, load_environment
from .errors import ApiSpecsError, CollectionLoadError
from .export import GeneratedSpec, check_format, emit
from .runner import (
    CancellationToken, RequestExecutor, RequestLog, RunConfig, RunResult,
    build_scopes, collect_secrets, prepare_requests
)

logger = logging.getLogger("apispecs.orchestrator")


class Stage:
    """Pipeline stage a generate_spec failure is attributed to."""

    LOAD = 'load'
    RUN = 'run'
    GENERATE = 'generate'


@dataclass
class GenerateResponse:
    """
    Outcome of generate_spec.

    ``spec_content`` is only set on success; ``logs`` are kept even when
    the document could not be produced.
    """

    success: bool
    message: str
    spec_content: Optional[str] = None
    spec: Optional[GeneratedSpec] = None
    logs: List[RequestLog] = field(default_factory=list)
    stage: Optional[str] = None
    output_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {
            'success': self.success,
            'message': self.message,
        }
        if self.spec_content is not None:
            data['spec_content'] = self.spec_content
        if self.spec is not None:
            data['endpoint_count'] = self.spec.endpoint_count
            data['request_count'] = self.spec.request_count
        if self.stage:
            data['stage'] = self.stage
        if self.output_path:
            data['output_path'] = self.output_path
        data['logs'] = [log.to_summary() for log in self.logs]
        return data


class SpecPipeline:
    """
    Validator -> resolver -> executor -> analyzer -> emitter.

    Example:
        pipeline = SpecPipeline(RunConfig(concurrency=4))
        result = pipeline.run("collection.json", "staging.json")
        print(result.message)
    """

    def __init__(self, config: Optional[RunConfig] = None,
                 session: Optional[requests.Session] = None):
        self.config = config or RunConfig()
        self.session = session

    def load(self, collection_path: str,
             environment_path: Optional[str] = None) -> Tuple[Collection, Optional[Environment]]:
        """
        Load and validate the collection and optional environment.

        Raises:
            CollectionLoadError: If either document cannot be used
        """
        validation = load_collection(collection_path)
        for warning in validation.warnings:
            logger.warning(warning)

        environment = load_environment(environment_path) if environment_path else None

        collection = validation.collection
        logger.info(
            f"Loaded collection '{collection.name}' with {collection.request_count} requests"
            + (f" (environment '{environment.name}')" if environment else "")
        )
        return collection, environment

    def run(self, collection_path: str, environment_path: Optional[str] = None,
            cancel_token: Optional[CancellationToken] = None) -> RunResult:
        """Load, resolve and execute every request in the collection."""
        collection, environment = self.load(collection_path, environment_path)
        return self._execute(collection, environment, cancel_token)

    def generate(self, collection_path: str, environment_path: Optional[str] = None,
                 output_format: str = 'yaml',
                 cancel_token: Optional[CancellationToken] = None) -> GenerateResponse:
        """Run the collection and render the observed traffic."""
        try:
            output_format = check_format(output_format)
        except ApiSpecsError as e:
            logger.error(str(e))
            return GenerateResponse(success=False, message=str(e), stage=Stage.GENERATE)

        try:
            collection, environment = self.load(collection_path, environment_path)
        except CollectionLoadError as e:
            logger.error(str(e))
            return GenerateResponse(
                success=False,
                message=f"Nothing could be read: {e}",
                stage=Stage.LOAD
            )

        result = self._execute(collection, environment, cancel_token)
        if result.cancelled:
            return GenerateResponse(
                success=False,
                message=result.message,
                logs=result.logs,
                stage=Stage.RUN
            )

        try:
            models = analyze(result.logs)
            spec = emit(models, output_format, logs=result.logs, title=collection.name)
        except ApiSpecsError as e:
            logger.error(str(e))
            return GenerateResponse(
                success=False,
                message=f"The document could not be produced: {e}",
                logs=result.logs,
                stage=Stage.GENERATE
            )

        if output_format == 'yaml':
            message = f"Generated OpenAPI spec with {spec.endpoint_count} endpoints"
        else:
            message = f"Generated HAR with {spec.request_count} entries"
        if result.failed:
            message += f" ({result.failed} of {result.total_requests} requests failed)"

        return GenerateResponse(
            success=True,
            message=message,
            spec_content=spec.content,
            spec=spec,
            logs=result.logs
        )

    def _execute(self, collection: Collection, environment: Optional[Environment],
                 cancel_token: Optional[CancellationToken]) -> RunResult:
        scopes = build_scopes(collection, environment, self.config.runtime_variables)
        resolved = prepare_requests(collection.iter_requests(), scopes)

        executor = RequestExecutor(
            config=self.config,
            session=self.session,
            secrets=collect_secrets(scopes)
        )
        try:
            result = executor.execute(resolved, cancel_token=cancel_token)
        finally:
            executor.close()

        logger.info(f"{result.message} in {result.total_duration_sec:.2f}s")
        return result


def validate_collection(path: str) -> bool:
    """
    Check that a collection file can be loaded and validated.

    Returns:
        True if valid, False for any load or validation failure
    """
    try:
        validation = load_collection(path)
    except ApiSpecsError as e:
        logger.info(f"Invalid collection {path}: {e}")
        return False

    for warning in validation.warnings:
        logger.warning(warning)
    return True


def run_collection(
    collection_path: str,
    environment_path: Optional[str] = None,
    config: Optional[RunConfig] = None,
    cancel_token: Optional[CancellationToken] = None,
    session: Optional[requests.Session] = None
) -> RunResult:
    """
    Execute every request in a collection.

    Args:
        collection_path: Postman collection JSON file
        environment_path: Optional Postman environment JSON file
        config: Run configuration
        cancel_token: Optional token to stop the run early
        session: HTTP session to use instead of a fresh one

    Returns:
        RunResult with one log per executed request, in collection order

    Raises:
        CollectionLoadError: If the collection or environment cannot be loaded
    """
    pipeline = SpecPipeline(config, session=session)
    return pipeline.run(collection_path, environment_path, cancel_token=cancel_token)


def generate_spec(
    collection_path: str,
    environment_path: Optional[str] = None,
    output_format: str = 'yaml',
    config: Optional[RunConfig] = None,
    cancel_token: Optional[CancellationToken] = None,
    session: Optional[requests.Session] = None
) -> GenerateResponse:
    """
    Run a collection and generate an OpenAPI (yaml) or HAR document.

    Never raises for load, run or generation problems; those come back as
    ``success=False`` with a message and the failing stage.
    """
    pipeline = SpecPipeline(config, session=session)
    return pipeline.generate(
        collection_path,
        environment_path,
        output_format=output_format,
        cancel_token=cancel_token
    )


def save_file(content: str, default_filename: str, directory: str = '.') -> Path:
    """
    Write generated content to a file.

    Args:
        content: Document text
        default_filename: File name, or a path
        directory: Directory used when default_filename has no directory part

    Returns:
        Path written
    """
    path = Path(default_filename)
    if not path.is_absolute() and path.parent == Path('.'):
        path = Path(directory) / path

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)

    logger.info(f"Saved {len(content)} characters to {path}")
    return path
