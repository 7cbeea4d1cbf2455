"""
API Specs Variable Resolver

Layered {{variable}} substitution over an ordered list of scopes
(Runtime > Environment > Collection). Resolution is pure: the same template
and scopes always produce the same text and the same issue report.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from ..collection.models import Collection, Environment, Scope, Variable
from ..errors import IssueKind

TOKEN_PATTERN = re.compile(r'\{\{([^{}]+)\}\}')

SECRET_MASK = '****'


@dataclass(frozen=True)
class VariableIssue:
    """An unresolved or cyclic token found while resolving a template."""

    name: str
    kind: str       # IssueKind.UNRESOLVED_VARIABLE or IssueKind.CYCLIC_VARIABLE
    location: str   # url, header:<name>, body, auth

    def to_dict(self) -> Dict[str, str]:
        return {'name': self.name, 'kind': self.kind, 'location': self.location}


class VariableMap(Mapping):
    """
    Key/value variables of one scope.

    Supports idempotent upsert-by-key; reads go through the Mapping
    interface so plain dicts can be used interchangeably as scopes.
    """

    def __init__(self, scope: str, variables: Optional[Iterable[Variable]] = None):
        self.scope = scope
        self._values: Dict[str, str] = {}
        self._secret: Set[str] = set()
        for variable in variables or ():
            self.upsert(variable.key, variable.value, secret=variable.secret)

    def upsert(self, key: str, value: str, secret: bool = False):
        """Insert or replace a variable. Calling twice with the same values is a no-op."""
        self._values[key] = value
        if secret:
            self._secret.add(key)
        else:
            self._secret.discard(key)

    def secret_values(self) -> List[str]:
        return [self._values[key] for key in self._secret if self._values[key]]

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"VariableMap({self.scope!r}, {len(self._values)} variables)"


def build_scopes(
    collection: Optional[Collection] = None,
    environment: Optional[Environment] = None,
    runtime: Optional[Dict[str, str]] = None
) -> List[VariableMap]:
    """
    Build the scope list in precedence order: runtime, environment, collection.

    Args:
        collection: Collection whose variables form the lowest scope
        environment: Optional environment
        runtime: Ad-hoc variables given by the caller

    Returns:
        Ordered list of VariableMaps, highest precedence first
    """
    runtime_map = VariableMap(Scope.RUNTIME)
    for key, value in (runtime or {}).items():
        runtime_map.upsert(key, str(value))

    return [
        runtime_map,
        VariableMap(Scope.ENVIRONMENT, environment.variables if environment else ()),
        VariableMap(Scope.COLLECTION, collection.variables if collection else ()),
    ]


def _expand(template: str, scopes: Sequence[Mapping]) -> Tuple[str, Set[str]]:
    """
    Substitute tokens recursively, returning the text and the set of
    variable names found to be part of (or depend on) a cycle.
    """
    cyclic: Set[str] = set()
    cache: Dict[str, Optional[str]] = {}

    def lookup(name: str) -> Optional[str]:
        for scope in scopes:
            if name in scope:
                return scope[name]
        return None

    def expand_name(name: str, stack: List[str]) -> Optional[str]:
        if name in stack:
            cyclic.update(stack[stack.index(name):])
            return None
        if name in cache:
            return cache[name]

        value = lookup(name)
        if value is None:
            result = None
        else:
            expanded, hit_cycle = expand_text(value, stack + [name])
            if hit_cycle:
                cyclic.add(name)
                result = None
            else:
                result = expanded

        cache[name] = result
        return result

    def expand_text(text: str, stack: List[str]) -> Tuple[str, bool]:
        hit_cycle = False

        def replace(match):
            nonlocal hit_cycle
            name = match.group(1)
            value = expand_name(name, stack)
            if value is None:
                if name in cyclic:
                    hit_cycle = True
                return match.group(0)
            return value

        return TOKEN_PATTERN.sub(replace, text), hit_cycle

    text, _ = expand_text(template, [])
    return text, cyclic


def resolve(template: str, scopes: Sequence[Mapping]) -> Tuple[str, Set[str]]:
    """
    Resolve {{name}} tokens against scopes ordered by precedence.

    Tokens are matched case-sensitively and exactly. Values that contain
    further tokens are expanded until nothing changes; a variable whose
    value leads back to itself is left verbatim instead of looping.

    Args:
        template: Text containing {{name}} tokens
        scopes: Variable mappings, highest precedence first

    Returns:
        Tuple of (resolved text, names of tokens left unresolved)

    Example:
        text, unresolved = resolve("{{base}}/users", [{"base": "http://x"}])
    """
    text, _ = _expand(template, scopes)
    return text, set(TOKEN_PATTERN.findall(text))


def resolve_with_issues(
    template: str,
    scopes: Sequence[Mapping],
    location: str
) -> Tuple[str, List[VariableIssue]]:
    """
    Resolve a template and describe every token left verbatim.

    Returns:
        Tuple of (resolved text, issues sorted by name)
    """
    text, cyclic = _expand(template, scopes)
    issues = [
        VariableIssue(
            name=name,
            kind=IssueKind.CYCLIC_VARIABLE if name in cyclic else IssueKind.UNRESOLVED_VARIABLE,
            location=location
        )
        for name in sorted(set(TOKEN_PATTERN.findall(text)))
    ]
    return text, issues


def collect_secrets(scopes: Sequence[Mapping]) -> List[str]:
    """Values of variables marked secret, to be masked in log output."""
    secrets = []
    for scope in scopes:
        if isinstance(scope, VariableMap):
            secrets.extend(scope.secret_values())
    return secrets
