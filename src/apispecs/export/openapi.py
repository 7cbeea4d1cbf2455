"""
OpenAPI 3.0 Emitter

Renders endpoint models as an OpenAPI 3.0 document serialized to YAML.
Schemas use the JSON Schema subset OpenAPI 3.0 understands: type,
properties, required, items, nullable and oneOf for union types.
"""

import logging
import re
from http import HTTPStatus
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from ..analysis import Endpoint, EndpointModel, Kind, ParameterModel, SchemaNode
from ..common import URLMatcher
from ..runner.models import RequestLog

OPENAPI_VERSION = '3.0.3'

# Operation keys a 3.0 Path Item allows
OPENAPI_METHODS = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch', 'trace')

logger = logging.getLogger("apispecs.export")

_SCALAR_TYPES = {
    Kind.BOOLEAN: 'boolean',
    Kind.NUMBER: 'number',
    Kind.STRING: 'string',
}


def schema_to_openapi(node: Optional[SchemaNode]) -> Dict[str, Any]:
    """
    Convert a SchemaNode to an OpenAPI schema object.

    A node holding several kinds becomes ``oneOf`` with one branch per kind.
    """
    if node is None:
        return {}

    variants = [_kind_schema(node, kind) for kind in sorted(node.types)]
    if not variants:
        schema: Dict[str, Any] = {}
    elif len(variants) == 1:
        schema = variants[0]
    else:
        schema = {'oneOf': variants}

    if node.nullable:
        schema['nullable'] = True
    return schema


def _kind_schema(node: SchemaNode, kind: str) -> Dict[str, Any]:
    if kind == Kind.OBJECT:
        schema = {
            'type': 'object',
            'properties': {name: schema_to_openapi(child) for name, child in node.properties}
        }
        if node.required:
            schema['required'] = sorted(node.required)
        return schema

    if kind == Kind.ARRAY:
        return {'type': 'array', 'items': schema_to_openapi(node.items)}

    return {'type': _SCALAR_TYPES.get(kind, 'string')}


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return f"Response {status}"


class OpenAPIEmitter:
    """
    Build OpenAPI 3.0 documents from endpoint models.

    Example:
        emitter = OpenAPIEmitter(title="Pet Store")
        yaml_text = emitter.render(models, logs)
    """

    def __init__(self, title: str = 'Generated API', version: str = '1.0.0',
                 description: str = 'API specification generated from live responses'):
        self.title = title
        self.version = version
        self.description = description

    def build(self, models: Mapping[Endpoint, EndpointModel],
              logs: Sequence[RequestLog] = ()) -> Dict[str, Any]:
        """
        Build the OpenAPI document as a dictionary.

        Args:
            models: Endpoint models from the analyzer
            logs: Request logs, used for the servers list

        Returns:
            OpenAPI document
        """
        document: Dict[str, Any] = {
            'openapi': OPENAPI_VERSION,
            'info': {
                'title': self.title,
                'version': self.version,
                'description': self.description,
            },
        }

        servers = sorted({URLMatcher.origin(log.url) for log in logs} - {''})
        if servers:
            document['servers'] = [{'url': url} for url in servers]

        paths: Dict[str, Dict[str, Any]] = {}
        operation_ids: set = set()
        for model in models.values():
            method = model.method.lower()
            if method not in OPENAPI_METHODS:
                logger.warning(f"Skipping {model.method} {model.path_template}: not an OpenAPI operation")
                continue
            operation = self._build_operation(model, operation_ids)
            paths.setdefault(model.path_template, {})[method] = operation

        document['paths'] = paths
        return document

    def render(self, models: Mapping[Endpoint, EndpointModel],
               logs: Sequence[RequestLog] = ()) -> str:
        """Build the document and serialize it to YAML."""
        return yaml.safe_dump(
            self.build(models, logs),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True
        )

    def _build_operation(self, model: EndpointModel, operation_ids: set) -> Dict[str, Any]:
        operation: Dict[str, Any] = {}

        if model.summary:
            operation['summary'] = model.summary
        operation['operationId'] = self._operation_id(model, operation_ids)
        if model.tags:
            operation['tags'] = list(model.tags)

        if model.parameters:
            operation['parameters'] = [self._build_parameter(p) for p in model.parameters]

        if model.request_body_schema is not None:
            media: Dict[str, Any] = {'schema': schema_to_openapi(model.request_body_schema)}
            request_example = next(
                (e.request_body for e in model.examples if e.request_body is not None), None
            )
            if request_example is not None:
                media['example'] = request_example
            operation['requestBody'] = {
                'required': True,
                'content': {model.request_content_type or 'application/json': media},
            }

        operation['responses'] = self._build_responses(model)
        return operation

    @staticmethod
    def _build_parameter(parameter: ParameterModel) -> Dict[str, Any]:
        built = {
            'name': parameter.name,
            'in': parameter.location,
            'required': parameter.required,
            'schema': schema_to_openapi(parameter.schema),
        }
        if parameter.example is not None:
            built['example'] = parameter.example
        return built

    @staticmethod
    def _build_responses(model: EndpointModel) -> Dict[str, Any]:
        responses: Dict[str, Any] = {}
        examples = {example.status: example for example in model.examples}

        for status, schema in model.response_schemas_by_status.items():
            response: Dict[str, Any] = {'description': _reason(status)}
            if schema is not None:
                media: Dict[str, Any] = {'schema': schema_to_openapi(schema)}
                example = examples.get(status)
                if example is not None and example.response_body is not None:
                    media['example'] = example.response_body
                content_type = model.response_content_types.get(status, 'application/json')
                response['content'] = {content_type: media}
            responses[str(status)] = response

        return responses

    @staticmethod
    def _operation_id(model: EndpointModel, used: set) -> str:
        """getUsersById-style identifier, unique within the document."""
        words: List[str] = []
        for part in model.path_template.split('/'):
            if not part:
                continue
            if part.startswith('{') and part.endswith('}'):
                words.append('By')
                part = part[1:-1]
            words.extend(w[:1].upper() + w[1:] for w in re.split(r'[^A-Za-z0-9]+', part) if w)

        base = model.method.lower() + ''.join(words)
        operation_id = base
        counter = 2
        while operation_id in used:
            operation_id = f"{base}{counter}"
            counter += 1
        used.add(operation_id)
        return operation_id
