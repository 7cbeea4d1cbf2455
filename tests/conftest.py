"""
Shared fixtures for API Specs tests.

HTTP is never touched: executors get a FakeSession that answers with real
requests.Response objects built in memory.
"""

import json
import threading
from datetime import timedelta

import pytest
import requests
from requests.structures import CaseInsensitiveDict


def build_response(status=200, body=b'', headers=None, url='https://api.example.com/',
                   elapsed_ms=5, reason='OK', encoding='utf-8'):
    """Build a requests.Response whose content is already loaded."""
    if isinstance(body, (dict, list)):
        body = json.dumps(body).encode('utf-8')
        headers = dict(headers or {})
        headers.setdefault('Content-Type', 'application/json')
    elif isinstance(body, str):
        body = body.encode('utf-8')

    response = requests.Response()
    response.status_code = status
    response._content = body
    response._content_consumed = True
    response.headers = CaseInsensitiveDict(headers or {})
    response.url = url
    response.reason = reason
    response.encoding = encoding
    response.elapsed = timedelta(milliseconds=elapsed_ms)
    return response


class FakeSession:
    """
    Stand-in for requests.Session.

    ``handler(method, url, kwargs)`` returns a Response or raises a
    requests exception. Every call is recorded.
    """

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def request(self, method, url, **kwargs):
        with self._lock:
            self.calls.append({'method': method, 'url': url, **kwargs})
        return self.handler(method, url, kwargs)

    def close(self):
        self.closed = True


@pytest.fixture
def make_response():
    """Factory for in-memory responses."""
    return build_response


@pytest.fixture
def json_api_session():
    """
    Session answering like a small users API:
    GET /users/<n> -> {"id": n, "name": "User n"}, POST /users -> 201 echo.
    """
    def handler(method, url, kwargs):
        path = url.split('://', 1)[-1].split('/', 1)[-1].split('?', 1)[0]
        parts = [p for p in path.split('/') if p]
        if method == 'GET' and len(parts) == 2 and parts[0] == 'users' and parts[1].isdigit():
            user_id = int(parts[1])
            return build_response(200, {'id': user_id, 'name': f"User {user_id}"}, url=url)
        if method == 'POST' and parts == ['users']:
            payload = json.loads(kwargs.get('data') or b'{}')
            payload['id'] = 99
            return build_response(201, payload, url=url, reason='Created')
        return build_response(404, {'error': 'not found'}, url=url, reason='Not Found')

    return FakeSession(handler)


@pytest.fixture
def failing_session():
    """Session whose every request fails at the transport level."""
    def handler(method, url, kwargs):
        raise requests.exceptions.ConnectionError(f"Connection refused: {url}")

    return FakeSession(handler)


@pytest.fixture
def sample_collection():
    """Collection v2.1 with a folder, collection variables and bearer auth."""
    return {
        'info': {
            'name': 'Users API',
            'schema': 'https://schema.getpostman.com/json/collection/v2.1.0/collection.json'
        },
        'auth': {
            'type': 'bearer',
            'bearer': [{'key': 'token', 'value': '{{token}}', 'type': 'string'}]
        },
        'variable': [
            {'key': 'baseUrl', 'value': 'https://api.example.com'},
            {'key': 'token', 'value': 'collection-token'}
        ],
        'item': [
            {
                'name': 'Users',
                'item': [
                    {
                        'name': 'Get user 1',
                        'request': {'method': 'GET', 'url': '{{baseUrl}}/users/1'}
                    },
                    {
                        'name': 'Get user 2',
                        'request': {'method': 'GET', 'url': '{{baseUrl}}/users/2'}
                    }
                ]
            },
            {
                'name': 'Create user',
                'request': {
                    'method': 'POST',
                    'url': '{{baseUrl}}/users',
                    'header': [{'key': 'Content-Type', 'value': 'application/json'}],
                    'body': {'mode': 'raw', 'raw': '{"name": "Alice"}'}
                }
            }
        ]
    }


@pytest.fixture
def sample_environment():
    """Environment overriding the token, with one secret and one disabled entry."""
    return {
        'name': 'Staging',
        'values': [
            {'key': 'token', 'value': 'env-secret-token', 'type': 'secret', 'enabled': True},
            {'key': 'baseUrl', 'value': 'https://disabled.example.com', 'enabled': False}
        ]
    }


@pytest.fixture
def write_json(tmp_path):
    """Write a JSON document into tmp_path and return its path as a string."""
    def write(name, document):
        path = tmp_path / name
        path.write_text(json.dumps(document), encoding='utf-8')
        return str(path)

    return write


@pytest.fixture
def collection_file(write_json, sample_collection):
    return write_json('collection.json', sample_collection)


@pytest.fixture
def environment_file(write_json, sample_environment):
    return write_json('environment.json', sample_environment)
