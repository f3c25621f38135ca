"""
Error Taxonomy
==============

Exceptions raised by the knowledge graph layer.

Hierarchy:
    GraphError
    ├── InvalidArgumentError      (bad ids, empty query/text, strength, depth)
    ├── NotFoundError             (entity / relationship / path)
    ├── CapabilityMissingError    (no embedder / no LLM configured)
    ├── UpstreamError             (backend or LLM failure, wraps the cause)
    └── ParseError                (malformed LLM output, recovered locally)

Validation errors subclass ValueError and not-found errors subclass
LookupError, so callers that only know the builtins still catch them.
"""

from typing import Optional


class GraphError(Exception):
    """Base class for all knowledge graph errors."""


# Invalid arguments

class InvalidArgumentError(GraphError, ValueError):
    """A caller-supplied argument failed validation."""


class InvalidIDError(InvalidArgumentError):
    """Empty or malformed entity / relationship id."""


class MissingRequiredFieldError(InvalidArgumentError):
    """
    A required field is empty.

    Attributes:
        field: Name of the missing field (e.g. "name", "source_id")
        item_id: Id of the offending entity/relationship, if known
    """

    def __init__(self, field: str, item_id: Optional[str] = None):
        self.field = field
        self.item_id = item_id
        where = f" on {item_id}" if item_id else ""
        super().__init__(f"missing required field '{field}'{where}")


class InvalidStrengthError(InvalidArgumentError):
    """Relationship strength outside [0.0, 1.0]."""


class InvalidPropertiesError(InvalidArgumentError):
    """Properties that cannot be encoded as JSON."""


class InvalidDepthError(InvalidArgumentError):
    """Negative traversal depth."""


class MaxDepthExceededError(InvalidDepthError):
    """Traversal depth above the supported maximum."""


class EmptyQueryError(InvalidArgumentError):
    """Search query is empty."""


# Not found

class NotFoundError(GraphError, LookupError):
    """Requested object does not exist (for the resolved tenant)."""


class EntityNotFoundError(NotFoundError):
    pass


class RelationshipNotFoundError(NotFoundError):
    pass


class PathNotFoundError(NotFoundError):
    pass


# Missing capabilities

class CapabilityMissingError(GraphError):
    """Operation needs a collaborator that was not configured."""


class NoEmbedderError(CapabilityMissingError):
    pass


class NoLLMError(CapabilityMissingError):
    pass


# Upstream failures

class UpstreamError(GraphError, RuntimeError):
    """Failure in a remote dependency. The original error is the __cause__."""


class BackendError(UpstreamError):
    """Object store query or transport failure."""


class ExtractionFailedError(UpstreamError):
    """LLM call during extraction failed."""


class ParseError(GraphError):
    """LLM response could not be parsed. Handled inside the extraction engine."""
