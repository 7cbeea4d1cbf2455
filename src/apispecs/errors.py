"""
API Specs Error Taxonomy

Fatal errors are exceptions rooted at ApiSpecsError. Non-fatal problems
(variables, transport) never raise; they are recorded on the affected
request or log using the IssueKind names.
"""


class ApiSpecsError(Exception):
    """Base class for all errors raised by the engine."""

    kind = "ApiSpecsError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class CollectionLoadError(ApiSpecsError):
    """A collection or environment document could not be loaded."""

    kind = "CollectionLoadError"


class DocumentReadError(CollectionLoadError):
    """File is missing, unreadable or not JSON."""

    kind = "DocumentReadError"


class MalformedCollection(CollectionLoadError):
    kind = "MalformedCollection"


class UnsupportedSchemaVersion(CollectionLoadError):
    kind = "UnsupportedSchemaVersion"


class MalformedEnvironment(CollectionLoadError):
    kind = "MalformedEnvironment"


class UnsupportedOutputFormat(ApiSpecsError):
    kind = "UnsupportedOutputFormat"


class SpecGenerationError(ApiSpecsError):
    """The analyzed traffic could not be rendered into a document."""

    kind = "SpecGenerationError"


class IssueKind:
    """Names of non-fatal issues recorded on requests and logs."""

    CYCLIC_VARIABLE = "CyclicVariable"
    UNRESOLVED_VARIABLE = "UnresolvedVariable"
    TRANSPORT_ERROR = "TransportError"
    TIMEOUT = "Timeout"
    UNSUPPORTED_AUTH = "UnsupportedAuth"
    UNSUPPORTED_BODY = "UnsupportedBody"
