"""
API Specs Runner Models

Resolved requests going into the executor and the logs coming out of it.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

from .variables import VariableIssue


@dataclass
class ResolvedRequest:
    """A request template with every variable substituted."""

    index: int
    name: str
    method: str
    url: str
    url_template: str
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: Optional[str] = None
    body_mode: Optional[str] = None
    form_fields: List[Tuple[str, str]] = field(default_factory=list)
    folder_path: Tuple[str, ...] = ()
    issues: List[VariableIssue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def content_type(self) -> Optional[str]:
        """Media type of the body as it will be sent."""
        if self.body_mode == 'formdata':
            return 'multipart/form-data'
        if self.body is None:
            return None
        return self.header('Content-Type')

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive lookup of the last header with this name."""
        value = None
        for key, header_value in self.headers:
            if key.lower() == name.lower():
                value = header_value
        return value


@dataclass
class RequestLog:
    """
    Record of one executed request.

    ``status`` is None when the transport failed; ``error`` and
    ``error_kind`` then describe what happened.
    """

    index: int
    name: str
    method: str
    url: str
    url_template: str
    started_at: str
    duration_ms: float
    request_headers: List[Tuple[str, str]] = field(default_factory=list)
    request_body: Optional[str] = None
    request_content_type: Optional[str] = None
    folder_path: Tuple[str, ...] = ()
    status: Optional[int] = None
    status_text: str = ""
    response_headers: List[Tuple[str, str]] = field(default_factory=list)
    response_body: str = ""
    response_body_size: int = 0
    body_truncated: bool = False
    wait_ms: Optional[float] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    issues: List[VariableIssue] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status is not None

    def response_header(self, name: str) -> Optional[str]:
        for key, value in self.response_headers:
            if key.lower() == name.lower():
                return value
        return None

    def request_header(self, name: str) -> Optional[str]:
        value = None
        for key, header_value in self.request_headers:
            if key.lower() == name.lower():
                value = header_value
        return value

    def to_summary(self) -> Dict[str, Any]:
        """Compact view for the presentation layer."""
        summary = {
            'name': self.name,
            'method': self.method,
            'url': self.url,
            'status': self.status,
            'duration_ms': round(self.duration_ms, 2),
        }
        if self.error:
            summary['error'] = self.error
        return summary

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data['folder_path'] = list(self.folder_path)
        data['request_headers'] = [list(h) for h in self.request_headers]
        data['response_headers'] = [list(h) for h in self.response_headers]
        return data


@dataclass
class RunResult:
    """Results from a collection run, in collection traversal order."""

    logs: List[RequestLog] = field(default_factory=list)
    total_requests: int = 0
    cancelled: bool = False
    total_duration_sec: float = 0.0

    @property
    def successful(self) -> int:
        return sum(1 for log in self.logs if log.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for log in self.logs if not log.succeeded)

    @property
    def skipped(self) -> int:
        """Requests never started because the run was cancelled."""
        return self.total_requests - len(self.logs)

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average response time."""
        if not self.logs:
            return 0.0
        return sum(log.duration_ms for log in self.logs) / len(self.logs)

    @property
    def message(self) -> str:
        if self.cancelled:
            return (f"Run cancelled after {len(self.logs)} of "
                    f"{self.total_requests} requests")
        if self.total_requests and self.failed == self.total_requests:
            return f"All {self.total_requests} requests failed"
        if self.failed:
            return f"{self.failed} of {self.total_requests} requests failed"
        return f"All {self.total_requests} requests completed"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'total_requests': self.total_requests,
            'successful': self.successful,
            'failed': self.failed,
            'skipped': self.skipped,
            'cancelled': self.cancelled,
            'message': self.message,
            'total_duration_sec': round(self.total_duration_sec, 2),
            'avg_duration_ms': round(self.avg_duration_ms, 2),
            'logs': [log.to_summary() for log in self.logs]
        }
