"""
Tests for the HAR emitter

Tests rendering request logs as HAR 1.2 including:
- One entry per log, in order
- Request and response fields
- Timings
- Failed requests
"""

import json

from apispecs.errors import IssueKind
from apispecs.export import HAREmitter
from apispecs.runner import RequestLog

from test_analyzer import make_log


def failed_log(index):
    return RequestLog(index=index, name='down', method='GET', url=f"https://x/down/{index}",
                      url_template='', started_at='2024-01-01T00:00:00+00:00', duration_ms=3.0,
                      error='Connection refused', error_kind=IssueKind.TRANSPORT_ERROR)


class TestHAREmitter:
    """Test HAREmitter."""

    def test_entry_count_and_order(self):
        """Test N logs give N entries in original order."""
        logs = [make_log('GET', f"https://x/items/{i}", index=i, body={'i': i}) for i in range(5)]

        document = json.loads(HAREmitter().render(logs))
        entries = document['log']['entries']

        assert document['log']['version'] == '1.2'
        assert document['log']['creator']['name'] == 'api-specs'
        assert [e['request']['url'] for e in entries] == [f"https://x/items/{i}" for i in range(5)]

    def test_request_fields(self):
        """Test method, headers, query string and post data."""
        log = make_log('POST', 'https://x/users?notify=1', status=201, body={'id': 1},
                       request_body='{"name": "A"}', request_content_type='application/json')
        log.request_headers = [('Content-Type', 'application/json')]

        request = HAREmitter().build([log])['log']['entries'][0]['request']

        assert request['method'] == 'POST'
        assert request['httpVersion'] == 'HTTP/1.1'
        assert request['headers'] == [{'name': 'Content-Type', 'value': 'application/json'}]
        assert request['queryString'] == [{'name': 'notify', 'value': '1'}]
        assert request['postData'] == {'mimeType': 'application/json', 'text': '{"name": "A"}'}
        assert request['bodySize'] == len('{"name": "A"}')
        assert request['headersSize'] == -1

    def test_multipart_post_data_as_params(self):
        """Test form-data bodies are listed as params, not mislabelled text."""
        log = make_log('POST', 'https://x/upload', status=201, body={'ok': True},
                       request_body='name=A&note=', request_content_type='multipart/form-data')

        request = HAREmitter().build([log])['log']['entries'][0]['request']

        assert request['postData'] == {
            'mimeType': 'multipart/form-data',
            'params': [{'name': 'name', 'value': 'A'}, {'name': 'note', 'value': ''}],
        }
        assert request['bodySize'] == -1

    def test_urlencoded_post_data_as_text(self):
        log = make_log('POST', 'https://x/login', body={'ok': True},
                       request_body='user=a&pass=b', request_content_type='application/x-www-form-urlencoded')

        post_data = HAREmitter().build([log])['log']['entries'][0]['request']['postData']

        assert post_data == {'mimeType': 'application/x-www-form-urlencoded', 'text': 'user=a&pass=b'}

    def test_response_fields(self):
        """Test status, content and redirect URL."""
        log = make_log('GET', 'https://x/old', status=301, body='', content_type=None)
        log.status_text = 'Moved Permanently'
        log.response_headers = [('Location', 'https://x/new')]

        response = HAREmitter().build([log])['log']['entries'][0]['response']

        assert response['status'] == 301
        assert response['statusText'] == 'Moved Permanently'
        assert response['redirectURL'] == 'https://x/new'
        assert response['content']['mimeType'] == 'application/octet-stream'

    def test_timings(self):
        """Test time equals duration and untracked phases are -1."""
        log = make_log('GET', 'https://x/a', body={})
        log.duration_ms = 50.0
        log.wait_ms = 30.0

        entry = HAREmitter().build([log])['log']['entries'][0]

        assert entry['time'] == 50.0
        assert entry['timings'] == {
            'blocked': -1, 'dns': -1, 'connect': -1, 'ssl': -1,
            'send': 0, 'wait': 30.0, 'receive': 20.0,
        }

    def test_failed_request_entry(self):
        """Test transport failures are entries with status 0 and an error."""
        entries = HAREmitter().build([failed_log(0), make_log('GET', 'https://x/ok', index=1)])['log']['entries']

        assert len(entries) == 2
        assert entries[0]['response']['status'] == 0
        assert entries[0]['_error'] == {'kind': 'TransportError', 'message': 'Connection refused'}
        assert entries[0]['timings']['wait'] == 3.0
        assert '_error' not in entries[1]

    def test_empty(self):
        assert json.loads(HAREmitter().render([]))['log']['entries'] == []

    def test_unicode_preserved(self):
        """Test non-ASCII text is written as-is."""
        log = make_log('GET', 'https://x/a', body={'name': 'Zoë'})

        assert 'Zoë' in HAREmitter().render([log])
