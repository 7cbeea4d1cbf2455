"""
API Specs Request Executor

Executes resolved requests over a shared HTTP session, capturing one
RequestLog per request. Transport failures are recorded, never raised, and
the output is always in collection order whatever the concurrency.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Iterable, List, Optional, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import ReadTimeoutError
from urllib3.util.retry import Retry

from ..common import safe_body
from ..errors import IssueKind
from .config import RunConfig
from .models import RequestLog, ResolvedRequest, RunResult
from .variables import SECRET_MASK

CHUNK_SIZE = 8192


class CancellationToken:
    """Thread-safe flag a caller sets to stop a run between requests."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class RequestExecutor:
    """
    Execute resolved requests and record logs.

    Features:
    - Shared requests.Session with a pooled adapter, no automatic retries
    - Bounded worker pool (concurrency 1 = strictly sequential)
    - Results written to a slot per original index, so completion order
      never leaks into the output
    - Response bodies captured up to a size cap, truncated with a marker
    - Cooperative cancellation between requests

    Example:
        executor = RequestExecutor(RunConfig(concurrency=4))
        result = executor.execute(resolved_requests)
        print(f"{result.failed} of {result.total_requests} failed")
    """

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        session: Optional[requests.Session] = None,
        secrets: Iterable[str] = ()
    ):
        """
        Initialize the executor.

        Args:
            config: Run configuration (defaults to RunConfig())
            session: HTTP session to use; one is created when omitted
            secrets: Values to mask in log output
        """
        self.config = config or RunConfig()
        self.secrets = [s for s in secrets if s]

        self.logger = logging.getLogger("apispecs.runner")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))

        self._owns_session = session is None
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create HTTP session; each logical request is sent exactly once."""
        session = requests.Session()

        retry_strategy = Retry(total=0, read=False)
        pool_size = max(10, self.config.concurrency)
        adapter = HTTPAdapter(
            max_retries=retry_strategy,
            pool_connections=pool_size,
            pool_maxsize=pool_size
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.max_redirects = self.config.max_redirects
        session.headers['User-Agent'] = self.config.user_agent
        return session

    def close(self):
        """Close the session if this executor created it."""
        if self._owns_session:
            self.session.close()

    def execute(
        self,
        resolved_requests: Sequence[ResolvedRequest],
        cancel_token: Optional[CancellationToken] = None
    ) -> RunResult:
        """
        Execute every request once, in order of the input sequence.

        Args:
            resolved_requests: Requests in collection traversal order
            cancel_token: Optional token; once cancelled, requests that have
                not started are skipped and in-flight ones finish

        Returns:
            RunResult with logs in input order
        """
        total = len(resolved_requests)
        slots: List[Optional[RequestLog]] = [None] * total
        start_time = time.time()

        self.logger.info(f"Running {total} requests (concurrency {self.config.concurrency})")

        def run_slot(position: int, resolved: ResolvedRequest):
            if cancel_token is not None and cancel_token.cancelled:
                return
            log = self._execute_single(resolved)
            slots[position] = log
            self._report(position + 1, total, log)

        with ThreadPoolExecutor(max_workers=self.config.concurrency) as pool:
            futures = [
                pool.submit(run_slot, position, resolved)
                for position, resolved in enumerate(resolved_requests)
            ]
            for future in futures:
                future.result()

        logs = [log for log in slots if log is not None]
        result = RunResult(
            logs=logs,
            total_requests=total,
            cancelled=len(logs) < total,
            total_duration_sec=time.time() - start_time
        )
        self.logger.info(f"{result.message} in {result.total_duration_sec:.2f}s "
                         f"(avg {result.avg_duration_ms:.0f}ms)")
        return result

    def _execute_single(self, resolved: ResolvedRequest) -> RequestLog:
        """
        Send one request and build its log.

        Only transport-level exceptions are caught; they become a log
        with ``status`` None.
        """
        log = RequestLog(
            index=resolved.index,
            name=resolved.name,
            method=resolved.method,
            url=resolved.url,
            url_template=resolved.url_template,
            started_at=datetime.now(timezone.utc).isoformat(),
            duration_ms=0.0,
            request_headers=list(resolved.headers),
            request_body=resolved.body,
            request_content_type=resolved.content_type,
            folder_path=resolved.folder_path,
            issues=list(resolved.issues)
        )

        headers = dict(resolved.headers)
        if self.config.user_agent and not any(name.lower() == 'user-agent' for name in headers):
            headers['User-Agent'] = self.config.user_agent

        request_kwargs = {
            'method': resolved.method,
            'url': resolved.url,
            'headers': headers,
            'timeout': self.config.timeout,
            'verify': self.config.verify_ssl,
            'allow_redirects': self.config.follow_redirects,
            'stream': True,
        }
        if resolved.body_mode == 'formdata':
            request_kwargs['files'] = [(key, (None, value)) for key, value in resolved.form_fields]
        elif resolved.body is not None:
            request_kwargs['data'] = resolved.body.encode('utf-8')

        start_time = time.time()

        try:
            response = self.session.request(**request_kwargs)
            try:
                log.wait_ms = response.elapsed.total_seconds() * 1000
                raw, truncated = self._read_capped(response)
            finally:
                response.close()

        except (requests.exceptions.RequestException, ValueError) as e:
            log.duration_ms = (time.time() - start_time) * 1000
            if self._is_timeout(e):
                log.error = str(e) or 'Request timed out'
                log.error_kind = IssueKind.TIMEOUT
            else:
                log.error = str(e) or type(e).__name__
                log.error_kind = IssueKind.TRANSPORT_ERROR
            return log

        log.duration_ms = (time.time() - start_time) * 1000
        log.status = response.status_code
        log.status_text = response.reason or self._reason_phrase(response.status_code)
        log.url = response.url or resolved.url
        log.response_headers = list(response.headers.items())

        sent = getattr(response, 'request', None)
        if sent is not None and getattr(sent, 'headers', None):
            log.request_headers = list(sent.headers.items())

        log.response_body, log.body_truncated = safe_body(
            raw, self.config.max_body_size, response.encoding, truncated
        )
        log.response_body_size = len(raw)
        if truncated:
            declared = response.headers.get('Content-Length', '')
            log.response_body_size = int(declared) if declared.isdigit() else -1

        return log

    def _read_capped(self, response: requests.Response) -> Tuple[bytes, bool]:
        """Read at most max_body_size bytes. Returns (bytes, truncated)."""
        limit = self.config.max_body_size
        chunks = []
        size = 0

        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if not chunk:
                continue
            if size + len(chunk) > limit:
                chunks.append(chunk[:limit - size])
                return b''.join(chunks), True
            chunks.append(chunk)
            size += len(chunk)

        return b''.join(chunks), False

    @staticmethod
    def _is_timeout(error: Exception) -> bool:
        """
        A read that stalls while streaming the body surfaces as a
        ConnectionError wrapping urllib3's ReadTimeoutError.
        """
        if isinstance(error, requests.exceptions.Timeout):
            return True
        return any(isinstance(arg, ReadTimeoutError) for arg in error.args)

    @staticmethod
    def _reason_phrase(status: int) -> str:
        try:
            return HTTPStatus(status).phrase
        except ValueError:
            return ''

    def _mask(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, SECRET_MASK)
        return text

    def _report(self, position: int, total: int, log: RequestLog):
        url = self._mask(log.url)
        if log.error:
            self.logger.warning(f"[{position}/{total}] {log.method} {url}: "
                                f"{log.error_kind}: {self._mask(log.error)}")
        else:
            self.logger.info(f"[{position}/{total}] {log.method} {url} -> "
                             f"{log.status} ({log.duration_ms:.0f}ms)")
