"""
Object Store Interface
======================

Capability interface for the document store backing the graph.

The graph layer only needs flat objects (a property dict plus an optional
vector) in two collections, addressed by an opaque backend handle, with
filtered lookup, three flavours of ranked search, and grouped counts.
Traversal is built on top of these primitives by the graph engines.

Filters are small value objects:

    And(Eq("entityId", "e-1"), Eq("orgId", "acme"))
    Or(Eq("entityType", "Person"), Eq("entityType", "Project"))
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union


@dataclass(frozen=True)
class Eq:
    """``field == value`` on a scalar property."""
    field: str
    value: Any


@dataclass(frozen=True)
class And:
    operands: tuple

    def __init__(self, *operands: "Filter"):
        object.__setattr__(self, "operands", tuple(operands))


@dataclass(frozen=True)
class Or:
    operands: tuple

    def __init__(self, *operands: "Filter"):
        object.__setattr__(self, "operands", tuple(operands))


Filter = Union[Eq, And, Or]


def all_of(*operands: Optional[Filter]) -> Optional[Filter]:
    """AND the non-None operands; collapses to the single operand or None."""
    present = [op for op in operands if op is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return And(*present)


def any_of(field_name: str, values: Sequence[Any]) -> Optional[Filter]:
    """OR of ``field == v`` for each value; None for an empty list."""
    values = list(values)
    if not values:
        return None
    if len(values) == 1:
        return Eq(field_name, values[0])
    return Or(*(Eq(field_name, v) for v in values))


def matches(flt: Optional[Filter], properties: Dict[str, Any]) -> bool:
    """Evaluate a filter against a property dict."""
    if flt is None:
        return True
    if isinstance(flt, Eq):
        return properties.get(flt.field) == flt.value
    if isinstance(flt, And):
        return all(matches(op, properties) for op in flt.operands)
    if isinstance(flt, Or):
        return any(matches(op, properties) for op in flt.operands)
    raise TypeError(f"Unsupported filter: {flt!r}")


@dataclass
class NewObject:
    """Object to insert. The backend assigns the handle."""
    properties: Dict[str, Any]
    vector: Optional[List[float]] = None


@dataclass
class StoredObject:
    handle: str
    properties: Dict[str, Any] = field(default_factory=dict)
    vector: Optional[List[float]] = None


@dataclass
class ScoredObject:
    """Search hit with a score normalized to [0, 1]."""
    object: StoredObject
    score: float


@dataclass
class ItemResult:
    """Per-object outcome of insert_many."""
    handle: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ObjectStore(ABC):
    """
    Abstract document store.

    Implementations raise BackendError for transport/query failures and let
    asyncio.CancelledError propagate untouched.
    """

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def ensure_collections(
        self,
        entity_collection: str,
        relationship_collection: str,
        keyword_fields: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        """
        Create both collections if missing. Only the entity collection is vectorized.

        Args:
            keyword_fields: collection name -> fields used in filters and group_by,
                            indexed by backends that need it
        """

    @abstractmethod
    async def insert_many(self, collection: str, objects: Sequence[NewObject]) -> List[ItemResult]:
        """
        Insert a batch.

        Returns one ItemResult per input, in order. A whole-batch failure
        raises BackendError instead.
        """

    @abstractmethod
    async def fetch(
        self,
        collection: str,
        flt: Optional[Filter] = None,
        limit: Optional[int] = None,
    ) -> List[StoredObject]:
        pass

    @abstractmethod
    async def near_vector(
        self,
        collection: str,
        vector: Sequence[float],
        flt: Optional[Filter] = None,
        limit: int = 10,
    ) -> List[ScoredObject]:
        """Nearest neighbours; score is certainty ``(1 + cosine) / 2``."""

    @abstractmethod
    async def bm25(
        self,
        collection: str,
        query: str,
        fields: Sequence[str],
        flt: Optional[Filter] = None,
        limit: int = 10,
    ) -> List[ScoredObject]:
        """Keyword search over ``fields``; score is ``s / (s + 1)``."""

    @abstractmethod
    async def hybrid(
        self,
        collection: str,
        query: str,
        vector: Sequence[float],
        fields: Sequence[str],
        flt: Optional[Filter] = None,
        limit: int = 10,
        alpha: float = 0.5,
    ) -> List[ScoredObject]:
        """Relative-score fusion of near_vector and bm25."""

    @abstractmethod
    async def update(
        self,
        collection: str,
        handle: str,
        properties: Dict[str, Any],
        vector: Optional[Sequence[float]] = None,
    ) -> None:
        """Replace the object's properties (and vector when given)."""

    @abstractmethod
    async def delete(self, collection: str, handle: str) -> None:
        pass

    @abstractmethod
    async def group_by(
        self,
        collection: str,
        field_name: str,
        flt: Optional[Filter] = None,
    ) -> Dict[str, int]:
        """Distinct values of ``field_name`` with their object counts."""

    @abstractmethod
    async def count(self, collection: str, flt: Optional[Filter] = None) -> int:
        pass
