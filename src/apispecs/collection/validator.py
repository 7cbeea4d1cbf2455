"""
Postman Collection Validator

Structurally validates a parsed Postman Collection v2.0/v2.1 document and
builds the immutable collection tree.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from ..common import load_json_document
from ..errors import MalformedCollection, UnsupportedSchemaVersion
from .models import (
    Auth, Body, Collection, Folder, KeyValue, Request, Scope,
    ValidationResult, Variable
)

logger = logging.getLogger("apispecs.collection")

SUPPORTED_MAJOR = 2
SUPPORTED_MINORS = (0, 1)

_SCHEMA_VERSION = re.compile(r'/collection/v(\d+)\.(\d+)\.(\d+)/')

HTTP_METHODS = ('GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'HEAD', 'OPTIONS',
                'TRACE', 'CONNECT')


def stringify(value: Any) -> str:
    """Postman stores most values as strings but tolerates numbers and bools."""
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value)


class CollectionValidator:
    """
    Validate a Postman collection document and build its tree.

    The validator only inspects the document it is given: no network or
    file access. Folders nest without depth limit and requests need not
    carry a body.

    Example:
        result = CollectionValidator().validate(document)
        for planned in result.collection.iter_requests():
            print(planned.request.method, planned.request.url)
    """

    def __init__(self):
        self.warnings: List[str] = []

    def validate(self, document: Any) -> ValidationResult:
        """
        Validate a parsed collection document.

        Args:
            document: The JSON-decoded collection

        Returns:
            ValidationResult holding the collection tree and any warnings

        Raises:
            MalformedCollection: If 'info' or 'item' are missing or malformed
            UnsupportedSchemaVersion: If the schema is outside v2.0/v2.1
        """
        self.warnings = []

        if not isinstance(document, dict):
            raise MalformedCollection(
                f"Expected a JSON object at top level, got {type(document).__name__}"
            )

        info = document.get('info')
        if not isinstance(info, dict):
            raise MalformedCollection("Missing or invalid 'info' object")

        items = document.get('item')
        if not isinstance(items, list):
            raise MalformedCollection("Missing or invalid 'item' array")

        schema = info.get('schema')
        self._check_schema(schema)

        name = info.get('name')
        if name is not None and not isinstance(name, str):
            raise MalformedCollection("'info.name' must be a string")

        collection = Collection(
            name=name or 'Untitled Collection',
            items=self._parse_items(items, 'item'),
            variables=self._parse_variables(document.get('variable'), 'variable'),
            auth=self._parse_auth(document.get('auth'), 'auth'),
            schema=schema,
            description=self._description(info.get('description'))
        )

        logger.debug(f"Validated collection '{collection.name}' "
                     f"({collection.request_count} requests)")
        return ValidationResult(collection=collection, warnings=list(self.warnings))

    def _check_schema(self, schema: Any):
        """Accept the v2.0/v2.1 family; collections without a schema are assumed v2.1."""
        if schema is None:
            self.warnings.append("Collection declares no schema; assuming v2.1")
            return

        if not isinstance(schema, str):
            raise MalformedCollection("'info.schema' must be a string")

        match = _SCHEMA_VERSION.search(schema)
        if not match:
            raise UnsupportedSchemaVersion(f"Unrecognized collection schema: {schema}")

        major, minor = int(match.group(1)), int(match.group(2))
        if major != SUPPORTED_MAJOR or minor not in SUPPORTED_MINORS:
            raise UnsupportedSchemaVersion(
                f"Collection schema v{major}.{minor} is not supported (expected v2.0 or v2.1)"
            )

    def _parse_items(self, items: List[Any], where: str) -> Tuple:
        """Recursively parse items and folders."""
        parsed = []

        for position, item in enumerate(items):
            location = f"{where}[{position}]"
            if not isinstance(item, dict):
                raise MalformedCollection(f"{location} must be an object")

            if 'request' in item:
                parsed.append(self._parse_request(item, location))
            elif 'item' in item:
                children = item['item']
                if not isinstance(children, list):
                    raise MalformedCollection(f"{location}.item must be an array")
                parsed.append(Folder(
                    name=stringify(item.get('name')) or 'Unnamed Folder',
                    items=self._parse_items(children, f"{location}.item"),
                    auth=self._parse_auth(item.get('auth'), f"{location}.auth"),
                    description=self._description(item.get('description'))
                ))
            else:
                raise MalformedCollection(
                    f"{location} is neither a request nor a folder"
                )

        return tuple(parsed)

    def _parse_request(self, item: Dict[str, Any], location: str) -> Request:
        """Parse a single request item."""
        name = stringify(item.get('name')) or 'Unnamed Request'
        request_data = item['request']

        has_scripts = any(
            isinstance(event, dict) and event.get('script')
            for event in item.get('event') or []
        )
        if has_scripts:
            self.warnings.append(f"Scripts on '{name}' are ignored")

        # v2 allows a bare URL string in place of the request object
        if isinstance(request_data, str):
            return Request(name=name, method='GET', url=request_data, has_scripts=has_scripts)

        if not isinstance(request_data, dict):
            raise MalformedCollection(f"{location}.request must be an object or URL string")

        method = request_data.get('method', 'GET')
        if not isinstance(method, str) or not method.strip():
            raise MalformedCollection(f"{location}.request.method must be a string")
        method = method.strip().upper()
        if method not in HTTP_METHODS:
            self.warnings.append(f"'{name}' uses non-standard method {method}")

        url, path_variables = self._parse_url(request_data.get('url', ''), f"{location}.request.url")

        return Request(
            name=name,
            method=method,
            url=url,
            headers=self._parse_headers(request_data.get('header'), f"{location}.request.header"),
            body=self._parse_body(request_data.get('body'), f"{location}.request.body"),
            auth=self._parse_auth(request_data.get('auth'), f"{location}.request.auth"),
            path_variables=path_variables,
            description=self._description(request_data.get('description')),
            has_scripts=has_scripts
        )

    def _parse_url(self, url_data: Any, location: str) -> Tuple[str, Tuple[KeyValue, ...]]:
        """Extract URL template and path variables from string or object form."""
        if url_data is None:
            return '', ()

        if isinstance(url_data, str):
            return url_data, ()

        if not isinstance(url_data, dict):
            raise MalformedCollection(f"{location} must be a string or object")

        path_variables = self._parse_key_values(url_data.get('variable'), f"{location}.variable")

        raw = url_data.get('raw')
        if raw:
            return stringify(raw), path_variables

        # Reconstruct from components
        protocol = url_data.get('protocol')
        host = url_data.get('host', [])
        path = url_data.get('path', [])
        port = url_data.get('port')
        query = self._parse_key_values(url_data.get('query'), f"{location}.query")

        url = ''
        if host:
            url = '.'.join(stringify(h) for h in host) if isinstance(host, list) else stringify(host)
            if port:
                url += f":{port}"
            if protocol:
                url = f"{protocol}://{url}"

        if path:
            if isinstance(path, list):
                segments = [
                    stringify(segment.get('value')) if isinstance(segment, dict) else stringify(segment)
                    for segment in path
                ]
                path_str = '/'.join(segments)
            else:
                path_str = stringify(path)
            if not path_str.startswith('/'):
                path_str = '/' + path_str
            url += path_str

        enabled_query = [f"{q.key}={q.value}" for q in query if not q.disabled]
        if enabled_query:
            url += '?' + '&'.join(enabled_query)

        return url, path_variables

    def _parse_headers(self, headers: Any, location: str) -> Tuple[KeyValue, ...]:
        if headers is None:
            return ()

        # v2.0 permits a raw "Key: value" header block
        if isinstance(headers, str):
            parsed = []
            for line in headers.splitlines():
                if ':' in line:
                    key, value = line.split(':', 1)
                    parsed.append(KeyValue(key=key.strip(), value=value.strip()))
            return tuple(parsed)

        return self._parse_key_values(headers, location)

    def _parse_key_values(self, entries: Any, location: str) -> Tuple[KeyValue, ...]:
        if entries is None:
            return ()
        if not isinstance(entries, list):
            raise MalformedCollection(f"{location} must be an array")

        parsed = []
        for position, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise MalformedCollection(f"{location}[{position}] must be an object")
            key = entry.get('key', entry.get('id'))
            if key is None:
                continue
            parsed.append(KeyValue(
                key=stringify(key),
                value=stringify(entry.get('value', entry.get('src'))),
                disabled=bool(entry.get('disabled', False)),
                type=stringify(entry.get('type')) or 'text'
            ))
        return tuple(parsed)

    def _parse_body(self, body_data: Any, location: str) -> Optional[Body]:
        """Parse request body. Bodies are optional on every request."""
        if body_data is None or body_data == {}:
            return None
        if not isinstance(body_data, dict):
            raise MalformedCollection(f"{location} must be an object")

        mode = stringify(body_data.get('mode')) or 'raw'
        disabled = bool(body_data.get('disabled', False))

        if mode == 'raw':
            options = body_data.get('options') or {}
            raw_options = options.get('raw') if isinstance(options, dict) else None
            language = raw_options.get('language') if isinstance(raw_options, dict) else None
            return Body(mode='raw', raw=stringify(body_data.get('raw')),
                        language=language, disabled=disabled)

        if mode in ('urlencoded', 'formdata'):
            fields = self._parse_key_values(body_data.get(mode), f"{location}.{mode}")
            return Body(mode=mode, fields=fields, disabled=disabled)

        if mode == 'graphql':
            graphql = body_data.get('graphql') or {}
            if not isinstance(graphql, dict):
                raise MalformedCollection(f"{location}.graphql must be an object")
            return Body(
                mode='graphql',
                graphql_query=stringify(graphql.get('query')),
                graphql_variables=stringify(graphql.get('variables')) or None,
                disabled=disabled
            )

        return Body(mode=mode, disabled=disabled)

    def _parse_auth(self, auth_data: Any, location: str) -> Optional[Auth]:
        """
        Parse an auth block.

        v2.1 stores parameters as [{key, value}] lists under the type name,
        v2.0 as a plain mapping. Both are flattened to (key, value) pairs.
        """
        if auth_data is None:
            return None
        if not isinstance(auth_data, dict):
            raise MalformedCollection(f"{location} must be an object")

        auth_type = stringify(auth_data.get('type'))
        if not auth_type or auth_type == 'inherit':
            return None

        raw_params = auth_data.get(auth_type)
        params = []
        if isinstance(raw_params, list):
            for entry in raw_params:
                if isinstance(entry, dict) and 'key' in entry:
                    params.append((stringify(entry['key']), stringify(entry.get('value'))))
        elif isinstance(raw_params, dict):
            params = [(stringify(k), stringify(v)) for k, v in raw_params.items()]

        return Auth(type=auth_type, params=tuple(params))

    def _parse_variables(self, variables: Any, location: str) -> Tuple[Variable, ...]:
        entries = self._parse_key_values(variables, location)
        return tuple(
            Variable(key=entry.key, value=entry.value, scope=Scope.COLLECTION,
                     secret=entry.type == 'secret')
            for entry in entries if not entry.disabled
        )

    @staticmethod
    def _description(description: Any) -> Optional[str]:
        # Descriptions are either strings or {content, type} objects
        if isinstance(description, dict):
            description = description.get('content')
        return description if isinstance(description, str) and description else None


def validate(document: Any) -> ValidationResult:
    """Convenience wrapper: validate a parsed collection document."""
    return CollectionValidator().validate(document)


def load_collection(file_path: str) -> ValidationResult:
    """Read a collection file and validate it."""
    return validate(load_json_document(file_path, invalid_error=MalformedCollection))
