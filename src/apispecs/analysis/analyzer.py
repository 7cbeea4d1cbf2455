"""
API Specs Response Analyzer

Groups request logs by endpoint (method + normalized path) and infers
parameters, request body schema and per-status response schemas.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple
from urllib.parse import parse_qsl

from ..common import URLMatcher, media_type, safe_json_parse
from ..runner.models import RequestLog
from .paths import PathObservation, normalize_paths, NUMERIC
from .schema import SchemaNode, unify

logger = logging.getLogger("apispecs.analysis")

FORM_TYPES = ('application/x-www-form-urlencoded', 'multipart/form-data')

_NOT_JSON = object()


class Endpoint(NamedTuple):
    """Endpoint key: HTTP method and path template."""

    method: str
    path: str


@dataclass
class ParameterModel:
    """Path or query parameter inferred from observed values."""

    name: str
    location: str  # path or query
    required: bool
    schema: SchemaNode
    example: Any = None


@dataclass
class ExchangeExample:
    """One literal request/response pair kept for documentation."""

    status: int
    url: str
    request_body: Any = None
    response_body: Any = None
    response_content_type: Optional[str] = None


@dataclass
class EndpointModel:
    """Everything inferred about one endpoint."""

    method: str
    path_template: str
    parameters: List[ParameterModel] = field(default_factory=list)
    request_body_schema: Optional[SchemaNode] = None
    request_content_type: Optional[str] = None
    response_schemas_by_status: Dict[int, Optional[SchemaNode]] = field(default_factory=dict)
    response_content_types: Dict[int, str] = field(default_factory=dict)
    examples: List[ExchangeExample] = field(default_factory=list)
    summary: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    log_count: int = 0

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(self.method, self.path_template)


def parse_body(text: Optional[str], content_type: Optional[str]) -> Tuple[Optional[SchemaNode], Any]:
    """
    Infer a schema for a body.

    JSON is attempted when the content type is JSON or absent; form bodies
    become objects of string fields; anything else is an opaque string.

    Returns:
        Tuple of (schema or None for empty bodies, decoded example)
    """
    if not text:
        return None, None

    mime = media_type(content_type)

    if mime in FORM_TYPES:
        fields = dict(parse_qsl(text, keep_blank_values=True))
        return SchemaNode.from_value(fields), fields

    if not mime or 'json' in mime:
        value = safe_json_parse(text, default=_NOT_JSON)
        if value is not _NOT_JSON:
            return SchemaNode.from_value(value), value

    return SchemaNode.opaque_string(text), text


def _scalar(value: str) -> Any:
    return int(value) if NUMERIC.match(value) else value


class EndpointAnalyzer:
    """
    Build endpoint models from request logs.

    Logs without a response (transport failures) carry no shape
    information and are skipped.

    Example:
        models = EndpointAnalyzer().analyze(run_result.logs)
        for endpoint, model in models.items():
            print(endpoint.method, endpoint.path, sorted(model.response_schemas_by_status))
    """

    def analyze(self, logs: Sequence[RequestLog]) -> Dict[Endpoint, EndpointModel]:
        """
        Group logs by endpoint and infer one model per endpoint.

        Args:
            logs: Request logs in collection order

        Returns:
            Ordered mapping of Endpoint to EndpointModel, by first appearance
        """
        executed = [log for log in logs if log.succeeded]
        skipped = len(logs) - len(executed)
        if skipped:
            logger.debug(f"Skipping {skipped} logs without a response")

        templates = normalize_paths([
            PathObservation(log.method, log.url, log.url_template) for log in executed
        ])

        grouped: Dict[Endpoint, List[RequestLog]] = OrderedDict()
        for log, template in zip(executed, templates):
            grouped.setdefault(Endpoint(log.method, template), []).append(log)

        models = OrderedDict()
        for endpoint, endpoint_logs in grouped.items():
            models[endpoint] = self._build_model(endpoint, endpoint_logs)

        logger.info(f"Analyzed {len(executed)} responses into {len(models)} endpoints")
        return models

    def _build_model(self, endpoint: Endpoint, logs: List[RequestLog]) -> EndpointModel:
        first = logs[0]
        model = EndpointModel(
            method=endpoint.method,
            path_template=endpoint.path,
            summary=first.name,
            tags=[first.folder_path[0]] if first.folder_path else [],
            log_count=len(logs)
        )

        model.parameters = self._path_parameters(endpoint.path, logs) + self._query_parameters(logs)

        request_schemas = []
        for log in logs:
            schema, _ = parse_body(log.request_body, log.request_content_type)
            if schema is not None:
                request_schemas.append(schema)
                if model.request_content_type is None:
                    model.request_content_type = media_type(log.request_content_type) or 'application/json'
        if request_schemas:
            model.request_body_schema = unify(request_schemas)

        by_status: Dict[int, List[SchemaNode]] = {}
        for log in logs:
            content_type = log.response_header('Content-Type')
            schema, decoded = parse_body(log.response_body, content_type)
            statuses = by_status.setdefault(log.status, [])

            if schema is not None:
                statuses.append(schema)
                if log.status not in model.response_content_types:
                    model.response_content_types[log.status] = (
                        media_type(content_type)
                        or ('text/plain' if schema.opaque else 'application/json')
                    )

            if not any(example.status == log.status for example in model.examples):
                _, request_example = parse_body(log.request_body, log.request_content_type)
                model.examples.append(ExchangeExample(
                    status=log.status,
                    url=log.url,
                    request_body=request_example,
                    response_body=decoded,
                    response_content_type=model.response_content_types.get(log.status)
                ))

        model.response_schemas_by_status = {
            status: unify(schemas) if schemas else None
            for status, schemas in sorted(by_status.items())
        }
        model.examples.sort(key=lambda example: example.status)
        return model

    @staticmethod
    def _path_parameters(path_template: str, logs: List[RequestLog]) -> List[ParameterModel]:
        parts = [part for part in path_template.split('/') if part]
        parameters = []
        for position, part in enumerate(parts):
            if not (part.startswith('{') and part.endswith('}')):
                continue
            values = [URLMatcher.path_segments(log.url)[position] for log in logs]
            parameters.append(ParameterModel(
                name=part[1:-1],
                location='path',
                required=True,
                schema=unify(SchemaNode.from_value(_scalar(v)) for v in values),
                example=_scalar(values[0])
            ))
        return parameters

    @staticmethod
    def _query_parameters(logs: List[RequestLog]) -> List[ParameterModel]:
        observed: Dict[str, List[str]] = OrderedDict()
        presence: Dict[str, int] = {}
        for log in logs:
            pairs = URLMatcher.query_pairs(log.url)
            for name, value in pairs:
                observed.setdefault(name, []).append(value)
            for name in {name for name, _ in pairs}:
                presence[name] = presence.get(name, 0) + 1

        return [
            ParameterModel(
                name=name,
                location='query',
                required=presence[name] == len(logs),
                schema=unify(SchemaNode.from_value(_scalar(v)) for v in values),
                example=_scalar(values[0])
            )
            for name, values in observed.items()
        ]


def analyze(logs: Sequence[RequestLog]) -> Dict[Endpoint, EndpointModel]:
    """Convenience wrapper around EndpointAnalyzer.analyze."""
    return EndpointAnalyzer().analyze(logs)
