"""
Tests for the request executor

Tests HTTP execution including:
- One log per request, in collection order
- Transport failures and timeouts recorded per request
- Concurrency independence
- Body size capping
- Cancellation
- Session ownership
"""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import patch

import pytest
import requests
from urllib3.exceptions import ReadTimeoutError

from conftest import FakeSession

from apispecs.errors import IssueKind
from apispecs.runner import (
    CancellationToken, RequestExecutor, ResolvedRequest, RunConfig
)


def make_requests(count, base='https://api.example.com/items'):
    return [
        ResolvedRequest(index=i, name=f"item {i}", method='GET',
                        url=f"{base}/{i}", url_template=f"{{{{base}}}}/items/{i}")
        for i in range(count)
    ]


class StallingHandler(BaseHTTPRequestHandler):
    """Send headers and half a body, then go quiet."""

    def do_GET(self):
        self.send_response(200)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', '100')
        self.end_headers()
        self.wfile.write(b'{"a":')
        self.wfile.flush()
        time.sleep(1.5)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def stalling_server():
    server = ThreadingHTTPServer(('127.0.0.1', 0), StallingHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


class TestExecute:
    """Test basic execution."""

    def test_logs_in_order(self, json_api_session):
        """Test every request gets one log, in input order."""
        resolved = [
            ResolvedRequest(index=i, name=f"user {i}", method='GET',
                            url=f"https://api.example.com/users/{i}", url_template='')
            for i in (1, 2, 3)
        ]
        executor = RequestExecutor(session=json_api_session)

        result = executor.execute(resolved)

        assert [log.index for log in result.logs] == [0, 1, 2]
        assert [log.status for log in result.logs] == [200, 200, 200]
        assert result.logs[0].response_body == '{"id": 1, "name": "User 1"}'
        assert result.total_requests == 3
        assert result.cancelled is False

    def test_log_fields(self, make_response):
        """Test status, headers, body and timing are captured."""
        session = FakeSession(lambda m, u, k: make_response(
            201, {'ok': True}, url=u, reason='Created',
            headers={'X-Request-Id': 'r1'}, elapsed_ms=12
        ))
        resolved = ResolvedRequest(
            index=0, name='create', method='POST', url='https://x/items', url_template='',
            headers=[('Content-Type', 'application/json')], body='{"a": 1}', body_mode='raw'
        )

        log = RequestExecutor(session=session).execute([resolved]).logs[0]

        assert log.status == 201
        assert log.status_text == 'Created'
        assert log.response_header('x-request-id') == 'r1'
        assert log.response_body_size == len(b'{"ok": true}')
        assert log.wait_ms == pytest.approx(12.0)
        assert log.duration_ms >= 0
        assert log.request_body == '{"a": 1}'
        assert log.request_content_type == 'application/json'
        assert session.calls[0]['data'] == b'{"a": 1}'
        assert session.calls[0]['stream'] is True

    def test_request_options_from_config(self, json_api_session):
        """Test timeout, TLS and redirect settings reach the session."""
        config = RunConfig(timeout=5, verify_ssl=False, follow_redirects=False)

        RequestExecutor(config=config, session=json_api_session).execute(make_requests(1))
        call = json_api_session.calls[0]

        assert call['timeout'] == 5
        assert call['verify'] is False
        assert call['allow_redirects'] is False

    def test_user_agent_on_injected_session(self, json_api_session):
        """Test the configured user agent is sent with a caller's session too."""
        RequestExecutor(RunConfig(user_agent='tester/2'), session=json_api_session).execute(make_requests(1))

        assert json_api_session.calls[0]['headers']['User-Agent'] == 'tester/2'

    def test_request_user_agent_wins(self, json_api_session):
        """Test a User-Agent header from the collection is kept."""
        resolved = ResolvedRequest(index=0, name='ua', method='GET', url='https://api.example.com/users/1',
                                   url_template='', headers=[('user-agent', 'collection/1')])

        RequestExecutor(RunConfig(user_agent='tester/2'), session=json_api_session).execute([resolved])

        assert json_api_session.calls[0]['headers'] == {'user-agent': 'collection/1'}

    def test_formdata_sent_as_multipart(self, json_api_session):
        """Test form fields go through files= so requests builds multipart."""
        resolved = ResolvedRequest(index=0, name='upload', method='POST', url='https://x/u',
                                   url_template='', body='a=1', body_mode='formdata',
                                   form_fields=[('a', '1')])

        RequestExecutor(session=json_api_session).execute([resolved])

        assert json_api_session.calls[0]['files'] == [('a', (None, '1'))]
        assert 'data' not in json_api_session.calls[0]

    def test_missing_reason_uses_phrase(self, make_response):
        """Test the HTTP reason phrase fills an empty reason."""
        session = FakeSession(lambda m, u, k: make_response(404, b'', url=u, reason=''))

        log = RequestExecutor(session=session).execute(make_requests(1)).logs[0]

        assert log.status_text == 'Not Found'


class TestFailures:
    """Test per-request failure handling."""

    def test_transport_failures_do_not_abort(self, failing_session):
        """Test every request is attempted and logged when all fail."""
        result = RequestExecutor(session=failing_session).execute(make_requests(4))

        assert len(result.logs) == 4
        assert len(failing_session.calls) == 4
        assert all(log.status is None for log in result.logs)
        assert all(log.error_kind == IssueKind.TRANSPORT_ERROR for log in result.logs)
        assert result.failed == 4
        assert result.message == 'All 4 requests failed'

    def test_timeout(self):
        """Test timeouts are recorded with their own kind."""
        def handler(method, url, kwargs):
            raise requests.exceptions.ReadTimeout('read timed out')

        log = RequestExecutor(session=FakeSession(handler)).execute(make_requests(1)).logs[0]

        assert log.error_kind == IssueKind.TIMEOUT
        assert 'timed out' in log.error

    def test_wrapped_read_timeout(self):
        """Test a ConnectionError wrapping a read timeout counts as a timeout."""
        def handler(method, url, kwargs):
            raise requests.exceptions.ConnectionError(ReadTimeoutError(None, url, 'Read timed out.'))

        log = RequestExecutor(session=FakeSession(handler)).execute(make_requests(1)).logs[0]

        assert log.error_kind == IssueKind.TIMEOUT

    def test_body_stall_is_timeout(self, stalling_server):
        """Test a server that stops mid-body is recorded as a timeout."""
        session = requests.Session()
        session.trust_env = False
        resolved = ResolvedRequest(index=0, name='slow', method='GET',
                                   url=f"{stalling_server}/slow", url_template='')

        log = RequestExecutor(RunConfig(timeout=0.3), session=session).execute([resolved]).logs[0]
        session.close()

        assert log.status is None
        assert log.error_kind == IssueKind.TIMEOUT

    def test_partial_failure(self, make_response):
        """Test one failing request does not affect its neighbours."""
        def handler(method, url, kwargs):
            if url.endswith('/1'):
                raise requests.exceptions.ConnectionError('refused')
            return make_response(200, {'ok': True}, url=url)

        result = RequestExecutor(session=FakeSession(handler)).execute(make_requests(3))

        assert [log.succeeded for log in result.logs] == [True, False, True]
        assert result.message == '1 of 3 requests failed'

    def test_invalid_url_is_transport_error(self):
        """Test requests' own URL errors are recorded, not raised."""
        def handler(method, url, kwargs):
            raise requests.exceptions.MissingSchema(f"Invalid URL '{url}'")

        resolved = ResolvedRequest(index=0, name='x', method='GET', url='{{base}}/x', url_template='{{base}}/x')
        log = RequestExecutor(session=FakeSession(handler)).execute([resolved]).logs[0]

        assert log.error_kind == IssueKind.TRANSPORT_ERROR

    def test_programming_errors_propagate(self):
        """Test non-transport exceptions are not swallowed."""
        def handler(method, url, kwargs):
            raise KeyError('bug')

        with pytest.raises(KeyError):
            RequestExecutor(session=FakeSession(handler)).execute(make_requests(1))


class TestConcurrency:
    """Test ordering under concurrency."""

    def test_order_independent_of_completion(self, make_response):
        """Test logs follow input order even when later requests finish first."""
        def handler(method, url, kwargs):
            index = int(url.rsplit('/', 1)[1])
            time.sleep(0.02 * (5 - index))
            return make_response(200, {'index': index}, url=url)

        config = RunConfig(concurrency=4)
        result = RequestExecutor(config=config, session=FakeSession(handler)).execute(make_requests(6))

        assert [log.index for log in result.logs] == list(range(6))
        assert [log.response_body for log in result.logs] == [
            f'{{"index": {i}}}' for i in range(6)
        ]

    def test_same_statuses_for_any_pool_size(self, json_api_session):
        """Test concurrency 1 and 4 produce the same sequence."""
        resolved = [
            ResolvedRequest(index=i, name=str(i), method='GET',
                            url=f"https://api.example.com/users/{i}", url_template='')
            for i in range(8)
        ]

        sequential = RequestExecutor(RunConfig(concurrency=1), session=json_api_session).execute(resolved)
        parallel = RequestExecutor(RunConfig(concurrency=4), session=json_api_session).execute(resolved)

        assert [(log.url, log.status, log.response_body) for log in sequential.logs] == \
               [(log.url, log.status, log.response_body) for log in parallel.logs]


class TestBodyCapping:
    """Test response body size limits."""

    def test_body_truncated_with_marker(self, make_response):
        """Test bodies over max_body_size are cut and marked."""
        session = FakeSession(lambda m, u, k: make_response(
            200, b'x' * 100, url=u, headers={'Content-Length': '100'}
        ))

        log = RequestExecutor(RunConfig(max_body_size=10), session=session).execute(make_requests(1)).logs[0]

        assert log.body_truncated is True
        assert log.response_body.startswith('x' * 10)
        assert 'truncated' in log.response_body
        assert log.response_body_size == 100

    def test_body_within_limit(self, make_response):
        """Test bodies under the limit are untouched."""
        session = FakeSession(lambda m, u, k: make_response(200, b'hello', url=u))

        log = RequestExecutor(RunConfig(max_body_size=10), session=session).execute(make_requests(1)).logs[0]

        assert log.body_truncated is False
        assert log.response_body == 'hello'


class TestCancellation:
    """Test run cancellation."""

    def test_cancel_keeps_completed_logs(self, make_response):
        """Test cancelling mid-run keeps finished logs and marks the run."""
        token = CancellationToken()

        def handler(method, url, kwargs):
            if url.endswith('/1'):
                token.cancel()
            return make_response(200, b'{}', url=url)

        result = RequestExecutor(session=FakeSession(handler)).execute(make_requests(5), cancel_token=token)

        assert result.cancelled is True
        assert [log.index for log in result.logs] == [0, 1]
        assert result.skipped == 3
        assert result.message == 'Run cancelled after 2 of 5 requests'

    def test_cancelled_before_start(self, json_api_session):
        """Test a pre-cancelled token sends nothing."""
        token = CancellationToken()
        token.cancel()

        result = RequestExecutor(session=json_api_session).execute(make_requests(3), cancel_token=token)

        assert result.logs == []
        assert json_api_session.calls == []
        assert result.cancelled is True


class TestSession:
    """Test session handling."""

    def test_injected_session_not_closed(self, json_api_session):
        """Test the executor leaves a caller's session open."""
        executor = RequestExecutor(session=json_api_session)
        executor.close()

        assert json_api_session.closed is False

    def test_owned_session_configured(self):
        """Test a created session gets the user agent and redirect cap."""
        executor = RequestExecutor(RunConfig(max_redirects=3, user_agent='tester/1'))

        assert isinstance(executor.session, requests.Session)
        assert executor.session.max_redirects == 3
        assert executor.session.headers['User-Agent'] == 'tester/1'

        with patch.object(executor.session, 'close') as mock_close:
            executor.close()
        mock_close.assert_called_once()

    def test_secrets_masked_in_progress_log(self, json_api_session, caplog):
        """Test secret values never appear in log lines."""
        resolved = [ResolvedRequest(index=0, name='x', method='GET',
                                    url='https://api.example.com/users/1?key=hunter2', url_template='')]
        executor = RequestExecutor(session=json_api_session, secrets=['hunter2'])

        with caplog.at_level('INFO', logger='apispecs.runner'):
            executor.execute(resolved)

        assert 'hunter2' not in caplog.text
        assert '****' in caplog.text
