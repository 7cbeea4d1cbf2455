"""
API Specs Common Utilities

Shared helpers for reading JSON documents and handling HTTP bodies.
"""

import json
from pathlib import Path
from typing import Any, Optional, Tuple, Type

from ..errors import CollectionLoadError, DocumentReadError

# Constants for body size limiting
MAX_BODY_SIZE = 1024 * 1024  # 1 MiB

TRUNCATION_MARKER = "\n[... truncated: body exceeded {limit} bytes]"


def safe_json_parse(json_string: Optional[str], default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        body = safe_json_parse(log.response_body, default={})
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def load_json_document(
    file_path: str,
    invalid_error: Type[CollectionLoadError] = DocumentReadError
) -> Any:
    """
    Load a JSON document from disk.

    Args:
        file_path: Path to the JSON file
        invalid_error: Exception class raised when the content is not JSON

    Returns:
        The parsed document

    Raises:
        DocumentReadError: If the file doesn't exist or can't be read
        invalid_error: If the file is not valid JSON
    """
    path = Path(file_path)
    if not path.is_file():
        raise DocumentReadError(f"File not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentReadError(f"Could not read {path}: {e}") from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise invalid_error(f"{path} is not valid JSON: {e}") from e


def safe_body(raw: bytes, max_bytes: int = MAX_BODY_SIZE, encoding: Optional[str] = None,
              truncated: bool = False) -> Tuple[str, bool]:
    """
    Decode a captured body, limiting size to prevent memory issues.

    Bodies longer than ``max_bytes`` (or already cut short by the caller,
    signalled with ``truncated``) get a truncation marker appended so the
    loss is visible in the output.

    Args:
        raw: Raw bytes of body
        max_bytes: Maximum size to keep
        encoding: Charset announced by the server, if any
        truncated: Whether the caller already stopped reading early

    Returns:
        Tuple of (decoded text, whether it was truncated)
    """
    raw = raw or b''
    if len(raw) > max_bytes:
        raw = raw[:max_bytes]
        truncated = True

    try:
        text = raw.decode(encoding or 'utf-8', errors='replace')
    except LookupError:
        # Unknown charset announced by the server
        text = raw.decode('utf-8', errors='replace')

    if truncated:
        text += TRUNCATION_MARKER.format(limit=max_bytes)

    return text, truncated


def media_type(content_type: Optional[str]) -> str:
    """Strip parameters from a Content-Type value: 'text/html; charset=x' -> 'text/html'."""
    if not content_type:
        return ""
    return content_type.split(';', 1)[0].strip().lower()
