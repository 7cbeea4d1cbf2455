"""
API Specs URL Utilities

Shared URL parsing and splitting utilities.
"""

from urllib.parse import urlparse, parse_qsl
from typing import List, Tuple


class URLMatcher:
    """Handles URL splitting used by path normalization and exporters."""

    @staticmethod
    def origin(url: str) -> str:
        """
        Extract scheme://host[:port] from a URL.

        Returns:
            Origin string, or '' for URLs without scheme or host
        """
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return ''
        return f"{parsed.scheme}://{parsed.netloc}"

    @staticmethod
    def path_segments(url: str) -> List[str]:
        """
        Split the path of a URL into its non-empty segments.

        Examples:
            https://api.example.com/users/1/ -> ['users', '1']
            https://api.example.com          -> []
        """
        return [segment for segment in urlparse(url).path.split('/') if segment]

    @staticmethod
    def query_pairs(url: str) -> List[Tuple[str, str]]:
        """Return query parameters as ordered (name, value) pairs."""
        return parse_qsl(urlparse(url).query, keep_blank_values=True)
