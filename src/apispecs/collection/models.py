"""
Postman Collection Model

Immutable in-memory tree produced by the validator: folders own their
children, requests carry unresolved templates, variables know their scope.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, Union


class Scope:
    """Variable scopes, lowest precedence first."""

    COLLECTION = "collection"
    ENVIRONMENT = "environment"
    RUNTIME = "runtime"

    PRECEDENCE = (RUNTIME, ENVIRONMENT, COLLECTION)


@dataclass(frozen=True)
class Variable:
    """A single key/value pair in one scope."""

    key: str
    value: str
    scope: str = Scope.COLLECTION
    secret: bool = False


@dataclass(frozen=True)
class KeyValue:
    """Header, query, form field or path variable entry."""

    key: str
    value: str
    disabled: bool = False
    type: str = "text"


@dataclass(frozen=True)
class Body:
    """Request body template in one of Postman's body modes."""

    mode: str                      # raw, urlencoded, formdata, graphql, file
    raw: Optional[str] = None
    language: Optional[str] = None  # options.raw.language (json, xml, text...)
    fields: Tuple[KeyValue, ...] = ()
    graphql_query: Optional[str] = None
    graphql_variables: Optional[str] = None
    disabled: bool = False


@dataclass(frozen=True)
class Auth:
    """Auth spec; params are flattened to (key, value) pairs."""

    type: str
    params: Tuple[Tuple[str, str], ...] = ()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        for name, value in self.params:
            if name == key:
                return value
        return default


@dataclass(frozen=True)
class Request:
    """Request template. ``auth`` of None means inherit from the parent."""

    name: str
    method: str
    url: str
    headers: Tuple[KeyValue, ...] = ()
    body: Optional[Body] = None
    auth: Optional[Auth] = None
    path_variables: Tuple[KeyValue, ...] = ()
    description: Optional[str] = None
    has_scripts: bool = False


@dataclass(frozen=True)
class Folder:
    name: str
    items: Tuple[Union['Folder', Request], ...] = ()
    auth: Optional[Auth] = None
    description: Optional[str] = None


Item = Union[Folder, Request]


@dataclass(frozen=True)
class PlannedRequest:
    """A leaf request at its traversal position with its effective auth."""

    index: int
    request: Request
    auth: Optional[Auth]
    folder_path: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Collection:
    """Root of the collection tree."""

    name: str
    items: Tuple[Item, ...] = ()
    variables: Tuple[Variable, ...] = ()
    auth: Optional[Auth] = None
    schema: Optional[str] = None
    description: Optional[str] = None

    def iter_requests(self) -> Iterator[PlannedRequest]:
        """
        Walk the tree depth-first in document order.

        Auth is resolved top-down: a request without its own auth uses the
        nearest folder's auth, then the collection's.
        """
        counter = [0]

        def walk(items, inherited_auth, folder_path):
            for item in items:
                if isinstance(item, Folder):
                    auth = item.auth if item.auth is not None else inherited_auth
                    yield from walk(item.items, auth, folder_path + (item.name,))
                else:
                    auth = item.auth if item.auth is not None else inherited_auth
                    planned = PlannedRequest(
                        index=counter[0],
                        request=item,
                        auth=auth,
                        folder_path=folder_path
                    )
                    counter[0] += 1
                    yield planned

        yield from walk(self.items, self.auth, ())

    @property
    def request_count(self) -> int:
        return sum(1 for _ in self.iter_requests())


@dataclass(frozen=True)
class Environment:
    """Flat environment variable set loaded independently of a collection."""

    name: str
    variables: Tuple[Variable, ...] = ()


@dataclass
class ValidationResult:
    """Outcome of a successful validation."""

    collection: Collection
    warnings: List[str] = field(default_factory=list)
