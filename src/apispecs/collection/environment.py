"""
Postman Environment Loader

Reads Postman environment exports: a name plus a flat ``values`` array of
{key, value, enabled, type} entries.
"""

import logging
from typing import Any

from ..common import load_json_document
from ..errors import MalformedEnvironment
from .models import Environment, Scope, Variable
from .validator import stringify

logger = logging.getLogger("apispecs.collection")


def parse_environment(document: Any) -> Environment:
    """
    Build an Environment from a parsed environment document.

    Entries with ``enabled: false`` (or the older ``disabled: true``) are
    skipped. ``type: secret`` marks the variable as secret.

    Raises:
        MalformedEnvironment: If the document is not an environment export
    """
    if not isinstance(document, dict):
        raise MalformedEnvironment("Environment must be a JSON object")

    values = document.get('values')
    if not isinstance(values, list):
        raise MalformedEnvironment("Missing or invalid 'values' array")

    variables = []
    for position, entry in enumerate(values):
        if not isinstance(entry, dict):
            raise MalformedEnvironment(f"values[{position}] must be an object")
        key = entry.get('key')
        if not isinstance(key, str) or not key:
            raise MalformedEnvironment(f"values[{position}] has no key")
        if entry.get('enabled', True) is False or entry.get('disabled', False) is True:
            continue
        variables.append(Variable(
            key=key,
            value=stringify(entry.get('value')),
            scope=Scope.ENVIRONMENT,
            secret=entry.get('type') == 'secret'
        ))

    name = document.get('name')
    environment = Environment(
        name=name if isinstance(name, str) and name else 'Environment',
        variables=tuple(variables)
    )
    logger.debug(f"Loaded environment '{environment.name}' ({len(variables)} variables)")
    return environment


def load_environment(file_path: str) -> Environment:
    """Read and parse an environment file."""
    return parse_environment(load_json_document(file_path, invalid_error=MalformedEnvironment))
