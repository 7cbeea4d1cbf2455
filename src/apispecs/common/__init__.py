"""
API Specs Common Utilities

Shared helpers used across the pipeline components.
"""

from .utils import safe_json_parse, load_json_document, safe_body, media_type, MAX_BODY_SIZE
from .url_utils import URLMatcher

__all__ = [
    'safe_json_parse',
    'load_json_document',
    'safe_body',
    'media_type',
    'MAX_BODY_SIZE',
    'URLMatcher',
]
