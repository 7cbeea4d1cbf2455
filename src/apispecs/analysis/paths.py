"""
API Specs Path Normalization

Maps observed request paths to path templates such as /users/{id}.

A segment becomes a placeholder when:
- the request template put a variable there ({{userId}} or :userId), which
  also names the placeholder
- it looks like an identifier (numeric, UUID, long hex)
- its value differs between paths of the same method that agree on every
  other segment, and at least one of those segments is literal
  (/health next to /users stays literal, /users/alice next to
  /users/bob does not)

Structurally equal templates always get the same placeholder names, across
methods too, so /users/{userId} and /users/{id} never coexist.
"""

import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..common import URLMatcher

NUMERIC = re.compile(r'^\d+$')
UUID = re.compile(r'^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$')
HEX_ID = re.compile(r'^(?=.*\d)[0-9a-fA-F]{16,}$')

TEMPLATE_TOKEN = re.compile(r'^(?:\{\{([^{}]+)\}\}|:([A-Za-z_][A-Za-z0-9_]*))$')

GENERIC_NAME = 'id'
PLACEHOLDER = '{}'

# Marks for placeholder positions without a template-given name
_IDENTIFIER = object()
_VARYING = object()


@dataclass(frozen=True)
class PathObservation:
    """One observed request: method, final URL and the URL template it came from."""

    method: str
    url: str
    url_template: str = ''


def is_identifier(segment: str) -> bool:
    return bool(NUMERIC.match(segment) or UUID.match(segment) or HEX_ID.match(segment))


def template_segments(url_template: str) -> List[str]:
    """
    Path segments of a URL template, which may not be a parseable URL.

    Examples:
        {{baseUrl}}/users/{{id}}?x=1   -> ['users', '{{id}}']
        https://api.example.com/a/:id  -> ['a', ':id']
    """
    template = re.split(r'[?#]', url_template, maxsplit=1)[0]
    if '://' in template:
        template = template.split('://', 1)[1]
        parts = template.split('/')[1:]
    elif template.startswith('/'):
        parts = template.split('/')
    else:
        # Leading segment is the host or a {{baseUrl}}-style variable
        parts = template.split('/')[1:]
    return [part for part in parts if part]


def _sanitize(name: str) -> str:
    return re.sub(r'[^A-Za-z0-9_.-]', '_', name.strip()) or GENERIC_NAME


def _template_names(observation: PathObservation, length: int) -> List[Optional[str]]:
    """Variable names from the template, aligned to the final path from the end."""
    names: List[Optional[str]] = [None] * length
    segments = template_segments(observation.url_template) if observation.url_template else []
    for offset in range(1, min(length, len(segments)) + 1):
        match = TEMPLATE_TOKEN.match(segments[-offset])
        if match:
            names[length - offset] = _sanitize(match.group(1) or match.group(2))
    return names


def normalize_paths(observations: Sequence[PathObservation]) -> List[str]:
    """
    Compute the path template for each observation.

    The result depends only on the set of observations, not their order.

    Args:
        observations: Observed requests

    Returns:
        Path templates, one per observation, in input order
    """
    segments = [URLMatcher.path_segments(obs.url) for obs in observations]
    marks: List[List[object]] = []

    for obs, path in zip(observations, segments):
        row: List[object] = []
        for name, segment in zip(_template_names(obs, len(path)), path):
            if name is not None:
                row.append(name)
            elif is_identifier(segment):
                row.append(_IDENTIFIER)
            else:
                row.append(None)
        marks.append(row)

    _mark_varying_segments(observations, segments, marks)

    shapes = [_shape(path, row) for path, row in zip(segments, marks)]
    names_by_shape = _names_by_shape(shapes, marks)

    templates = []
    for path, row, shape in zip(segments, marks, shapes):
        names = iter(names_by_shape[shape])
        parts = [segment if mark is None else '{' + next(names) + '}'
                 for segment, mark in zip(path, row)]
        templates.append('/' + '/'.join(parts))
    return templates


def _mark_varying_segments(observations, segments, marks):
    """Mark positions whose values differ while all other segments agree
    and at least one of them is literal."""
    clusters: Dict[Tuple[str, int], List[int]] = defaultdict(list)
    for index, (obs, path) in enumerate(zip(observations, segments)):
        clusters[(obs.method.upper(), len(path))].append(index)

    for (_, length), members in sorted(clusters.items()):
        for position in range(length):
            groups: Dict[Tuple, List[int]] = defaultdict(list)
            for index in members:
                key = tuple(
                    PLACEHOLDER if marks[index][other] is not None else segments[index][other]
                    for other in range(length) if other != position
                )
                groups[key].append(index)

            for key, group in groups.items():
                if all(part == PLACEHOLDER for part in key):
                    continue
                values = {segments[index][position] for index in group}
                if len(values) < 2:
                    continue
                unmarked = [index for index in group if marks[index][position] is None]
                if not unmarked:
                    continue
                for index in unmarked:
                    marks[index][position] = _VARYING


def _shape(path: List[str], row: List[object]) -> Tuple[str, ...]:
    return tuple(PLACEHOLDER if mark is not None else segment for segment, mark in zip(path, row))


def _names_by_shape(shapes, marks) -> Dict[Tuple[str, ...], List[str]]:
    """Pick one name per placeholder position for every distinct shape."""
    candidates: Dict[Tuple[str, ...], Dict[int, set]] = defaultdict(lambda: defaultdict(set))
    for shape, row in zip(shapes, marks):
        for position, mark in enumerate(row):
            if isinstance(mark, str):
                candidates[shape][position].add(mark)

    names_by_shape = {}
    for shape in set(shapes):
        used = set()
        names = []
        for position, segment in enumerate(shape):
            if segment != PLACEHOLDER:
                continue
            found = candidates[shape].get(position)
            base = min(found) if found else GENERIC_NAME
            name = base
            counter = 2
            while name in used:
                name = f"{base}{counter}"
                counter += 1
            used.add(name)
            names.append(name)
        names_by_shape[shape] = names
    return names_by_shape
