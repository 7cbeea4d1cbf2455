"""
API Specs Export Module

Renders analyzed traffic as an OpenAPI 3.0 document (YAML) or the raw
request logs as a HAR 1.2 trace (JSON).
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional, Sequence

import yaml

from .. import __version__
from ..analysis import Endpoint, EndpointModel
from ..errors import SpecGenerationError, UnsupportedOutputFormat
from ..runner.models import RequestLog
from .har import HAREmitter
from .openapi import OpenAPIEmitter, schema_to_openapi

logger = logging.getLogger("apispecs.export")

SUPPORTED_FORMATS = ('yaml', 'har')


@dataclass
class GeneratedSpec:
    """Final artifact handed to the caller."""

    format: str
    content: str
    endpoint_count: int
    request_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def check_format(output_format: str) -> str:
    """
    Normalize an output format name.

    Raises:
        UnsupportedOutputFormat: If the format is not yaml or har
    """
    normalized = (output_format or '').strip().lower()
    if normalized not in SUPPORTED_FORMATS:
        raise UnsupportedOutputFormat(
            f"Unsupported output format '{output_format}' "
            f"(expected one of: {', '.join(SUPPORTED_FORMATS)})"
        )
    return normalized


def emit(
    models: Mapping[Endpoint, EndpointModel],
    output_format: str,
    logs: Sequence[RequestLog] = (),
    title: Optional[str] = None
) -> GeneratedSpec:
    """
    Render endpoint models or logs in the requested format.

    Args:
        models: Endpoint models from the analyzer
        output_format: 'yaml' (OpenAPI 3.0) or 'har' (HAR 1.2)
        logs: Request logs in collection order
        title: Document title for OpenAPI output

    Returns:
        GeneratedSpec with the serialized document

    Raises:
        UnsupportedOutputFormat: If the format is not supported
        SpecGenerationError: If the document cannot be serialized
    """
    output_format = check_format(output_format)

    try:
        if output_format == 'yaml':
            content = OpenAPIEmitter(title=title or 'Generated API').render(models, logs)
        else:
            content = HAREmitter(creator_version=__version__).render(logs)
    except (yaml.YAMLError, TypeError, ValueError) as e:
        raise SpecGenerationError(f"Failed to render {output_format} document: {e}") from e

    logger.info(f"Rendered {output_format} document: {len(models)} endpoints, {len(logs)} requests")
    return GeneratedSpec(
        format=output_format,
        content=content,
        endpoint_count=len(models),
        request_count=len(logs)
    )


__all__ = [
    'GeneratedSpec',
    'HAREmitter',
    'OpenAPIEmitter',
    'SUPPORTED_FORMATS',
    'check_format',
    'emit',
    'schema_to_openapi',
]
