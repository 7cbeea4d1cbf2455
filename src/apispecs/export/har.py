"""
HAR 1.2 Emitter

Renders request logs as an HTTP Archive, one entry per log in collection
order. Only total time and time-to-headers are measured; connection
phases that are not tracked are reported as -1.
"""

import json
from typing import Any, Dict, List, Sequence, Tuple
from urllib.parse import parse_qsl

from ..common import URLMatcher, media_type
from ..runner.models import RequestLog

HAR_VERSION = '1.2'
HTTP_VERSION = 'HTTP/1.1'
MULTIPART_FORM = 'multipart/form-data'


def _name_values(pairs: Sequence[Tuple[str, str]]) -> List[Dict[str, str]]:
    return [{'name': name, 'value': value} for name, value in pairs]


class HAREmitter:
    """
    Build HAR documents from request logs.

    Example:
        har_text = HAREmitter().render(run_result.logs)
    """

    def __init__(self, creator_name: str = 'api-specs', creator_version: str = '1.0.0'):
        self.creator_name = creator_name
        self.creator_version = creator_version

    def build(self, logs: Sequence[RequestLog]) -> Dict[str, Any]:
        """Build the HAR document as a dictionary."""
        return {
            'log': {
                'version': HAR_VERSION,
                'creator': {
                    'name': self.creator_name,
                    'version': self.creator_version,
                },
                'entries': [self._entry(log) for log in logs],
            }
        }

    def render(self, logs: Sequence[RequestLog]) -> str:
        """Build the document and serialize it to JSON."""
        return json.dumps(self.build(logs), indent=2, ensure_ascii=False)

    def _entry(self, log: RequestLog) -> Dict[str, Any]:
        wait = log.wait_ms if log.wait_ms is not None else log.duration_ms
        wait = min(wait, log.duration_ms)

        entry = {
            'startedDateTime': log.started_at,
            'time': round(log.duration_ms, 3),
            'request': self._request(log),
            'response': self._response(log),
            'cache': {},
            'timings': {
                'blocked': -1,
                'dns': -1,
                'connect': -1,
                'ssl': -1,
                'send': 0,
                'wait': round(wait, 3),
                'receive': round(max(log.duration_ms - wait, 0.0), 3),
            },
        }

        if log.error:
            entry['_error'] = {'kind': log.error_kind, 'message': log.error}
        return entry

    @staticmethod
    def _request(log: RequestLog) -> Dict[str, Any]:
        body = log.request_body or ''
        request = {
            'method': log.method,
            'url': log.url,
            'httpVersion': HTTP_VERSION,
            'cookies': [],
            'headers': _name_values(log.request_headers),
            'queryString': _name_values(URLMatcher.query_pairs(log.url)),
            'headersSize': -1,
            'bodySize': len(body.encode('utf-8')),
        }
        if log.request_body is None:
            return request

        mime_type = log.request_content_type or 'application/octet-stream'
        if media_type(mime_type) == MULTIPART_FORM:
            # Fields only; the encoded multipart payload is not kept
            request['bodySize'] = -1
            request['postData'] = {
                'mimeType': mime_type,
                'params': _name_values(parse_qsl(body, keep_blank_values=True)),
            }
        else:
            request['postData'] = {'mimeType': mime_type, 'text': body}
        return request

    @staticmethod
    def _response(log: RequestLog) -> Dict[str, Any]:
        content_type = log.response_header('Content-Type')
        content = {
            'size': max(log.response_body_size, 0),
            'mimeType': content_type or 'application/octet-stream',
            'text': log.response_body,
        }
        if log.body_truncated:
            content['comment'] = 'Body truncated to the configured capture size'

        return {
            'status': log.status if log.status is not None else 0,
            'statusText': log.status_text,
            'httpVersion': HTTP_VERSION,
            'cookies': [],
            'headers': _name_values(log.response_headers),
            'content': content,
            'redirectURL': log.response_header('Location') or '',
            'headersSize': -1,
            'bodySize': log.response_body_size if log.succeeded else -1,
        }
