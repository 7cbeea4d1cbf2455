"""
API Specs Request Preparer

Turns request templates into ResolvedRequests: substitutes variables in
URL, headers, auth and body, applies inherited auth and picks a content type.
"""

import base64
import json
import logging
import re
from typing import List, Optional, Sequence, Tuple
from collections.abc import Mapping
from urllib.parse import urlencode

from ..collection.models import Auth, Body, PlannedRequest
from ..common import safe_json_parse
from ..errors import IssueKind
from .models import ResolvedRequest
from .variables import VariableIssue, resolve_with_issues

logger = logging.getLogger("apispecs.runner")

# options.raw.language -> Content-Type
RAW_CONTENT_TYPES = {
    'json': 'application/json',
    'xml': 'application/xml',
    'html': 'text/html',
    'javascript': 'application/javascript',
    'text': 'text/plain',
}

FORM_URLENCODED = 'application/x-www-form-urlencoded'
MULTIPART_FORM = 'multipart/form-data'


class RequestPreparer:
    """
    Resolve planned requests against an ordered scope list.

    Unresolved and cyclic tokens stay verbatim in the output and are
    recorded on the ResolvedRequest; nothing here raises for them.

    Example:
        preparer = RequestPreparer(build_scopes(collection, environment))
        resolved = [preparer.prepare(p) for p in collection.iter_requests()]
    """

    def __init__(self, scopes: Sequence[Mapping]):
        self.scopes = scopes

    def prepare(self, planned: PlannedRequest) -> ResolvedRequest:
        """
        Resolve one planned request.

        Args:
            planned: Request at its traversal position with effective auth

        Returns:
            ResolvedRequest ready for execution
        """
        request = planned.request
        issues: List[VariableIssue] = []
        warnings: List[str] = []

        url_template = self._substitute_path_variables(request.url, request.path_variables)
        url = self._resolve(url_template, 'url', issues)

        headers = []
        for header in request.headers:
            if header.disabled or not header.key:
                continue
            key = self._resolve(header.key, f"header:{header.key}", issues)
            value = self._resolve(header.value, f"header:{header.key}", issues)
            headers.append((key, value))

        url = self._apply_auth(planned.auth, url, headers, issues, warnings)

        resolved = ResolvedRequest(
            index=planned.index,
            name=request.name,
            method=request.method,
            url=url,
            url_template=request.url,
            headers=headers,
            folder_path=planned.folder_path,
            issues=issues,
            warnings=warnings
        )

        if request.body is not None and not request.body.disabled:
            self._apply_body(request.body, resolved)

        for issue in resolved.issues:
            logger.warning(f"{issue.kind} '{{{{{issue.name}}}}}' in {issue.location} "
                           f"of '{request.name}'")
        for warning in resolved.warnings:
            logger.warning(f"{warning} ('{request.name}')")

        return resolved

    def _resolve(self, template: str, location: str, issues: List[VariableIssue]) -> str:
        text, found = resolve_with_issues(template, self.scopes, location)
        issues.extend(found)
        return text

    @staticmethod
    def _substitute_path_variables(url: str, path_variables) -> str:
        """Replace Postman ':name' path segments with their (templated) values."""
        for variable in path_variables:
            if variable.disabled or not variable.value:
                continue
            pattern = r'(?<=/):' + re.escape(variable.key) + r'(?=[/?#]|$)'
            url = re.sub(pattern, lambda _match, v=variable.value: v, url)
        return url

    def _apply_auth(
        self,
        auth: Optional[Auth],
        url: str,
        headers: List[Tuple[str, str]],
        issues: List[VariableIssue],
        warnings: List[str]
    ) -> str:
        """Add auth headers or query params. Returns the possibly extended URL."""
        if auth is None or auth.type == 'noauth':
            return url

        def param(key: str, default: str = '') -> str:
            return self._resolve(auth.get(key, default) or default, 'auth', issues)

        def has_header(name: str) -> bool:
            return any(key.lower() == name.lower() for key, _ in headers)

        if auth.type == 'bearer':
            if not has_header('Authorization'):
                headers.append(('Authorization', f"Bearer {param('token')}"))

        elif auth.type == 'basic':
            if not has_header('Authorization'):
                credentials = f"{param('username')}:{param('password')}".encode('utf-8')
                headers.append(('Authorization', f"Basic {base64.b64encode(credentials).decode('ascii')}"))

        elif auth.type == 'apikey':
            key = param('key', 'X-API-Key')
            value = param('value')
            if auth.get('in', 'header') == 'query':
                separator = '&' if '?' in url else '?'
                url = f"{url}{separator}{urlencode([(key, value)])}"
            elif not has_header(key):
                headers.append((key, value))

        elif auth.type == 'oauth2' and auth.get('accessToken'):
            # Static access tokens only; token flows are not run
            token = param('accessToken')
            if auth.get('addTokenTo', 'header') == 'queryParams':
                separator = '&' if '?' in url else '?'
                url = f"{url}{separator}{urlencode([('access_token', token)])}"
            elif not has_header('Authorization'):
                prefix = param('headerPrefix', 'Bearer')
                headers.append(('Authorization', f"{prefix} {token}".strip()))

        else:
            warnings.append(f"{IssueKind.UNSUPPORTED_AUTH}: auth type '{auth.type}' is not applied")

        return url

    def _apply_body(self, body: Body, resolved: ResolvedRequest):
        """Resolve body templates and set body, form fields and content type."""
        issues = resolved.issues
        content_type = None

        if body.mode == 'raw':
            text = self._resolve(body.raw or '', 'body', issues)
            if not text:
                return
            resolved.body = text
            content_type = RAW_CONTENT_TYPES.get((body.language or 'text').lower(), 'text/plain')

        elif body.mode == 'urlencoded':
            pairs = [
                (self._resolve(f.key, 'body', issues), self._resolve(f.value, 'body', issues))
                for f in body.fields if not f.disabled
            ]
            resolved.body = urlencode(pairs)
            content_type = FORM_URLENCODED

        elif body.mode == 'formdata':
            for form_field in body.fields:
                if form_field.disabled:
                    continue
                if form_field.type == 'file':
                    resolved.warnings.append(
                        f"{IssueKind.UNSUPPORTED_BODY}: file field '{form_field.key}' is not sent"
                    )
                    continue
                resolved.form_fields.append((
                    self._resolve(form_field.key, 'body', issues),
                    self._resolve(form_field.value, 'body', issues)
                ))
            resolved.body = urlencode(resolved.form_fields)
            resolved.body_mode = 'formdata'
            return

        elif body.mode == 'graphql':
            query = self._resolve(body.graphql_query or '', 'body', issues)
            variables_text = self._resolve(body.graphql_variables or '', 'body', issues)
            variables = safe_json_parse(variables_text, default={})
            resolved.body = json.dumps({'query': query, 'variables': variables})
            content_type = 'application/json'

        else:
            resolved.warnings.append(f"{IssueKind.UNSUPPORTED_BODY}: body mode '{body.mode}' is not sent")
            return

        resolved.body_mode = body.mode
        if resolved.header('Content-Type') is None:
            resolved.headers.append(('Content-Type', content_type))


def prepare_requests(planned_requests, scopes: Sequence[Mapping]) -> List[ResolvedRequest]:
    """Resolve every planned request in traversal order."""
    preparer = RequestPreparer(scopes)
    return [preparer.prepare(planned) for planned in planned_requests]
