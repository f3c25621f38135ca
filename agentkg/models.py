"""
Knowledge Graph Models
======================

Dataclasses for entities, relationships and the results returned by the
search, traversal and extraction engines.

Entities and relationships carry their domain ``id`` (chosen by the caller
or generated at extraction time). The backend handle of the stored object
never leaks into these types.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Direction(str, Enum):
    """Edge direction relative to an entity."""
    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"


class SearchMode(str, Enum):
    """Retrieval strategy for entity search."""
    VECTOR = "vector"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


@dataclass
class Entity:
    """
    Node of the knowledge graph.

    Attributes:
        id: Domain identifier, unique per tenant
        name: Display name ("John Smith", "Project Alpha")
        type: Category ("Person", "Organization", ...)
        description: Free text, also the preferred embedding input
        properties: Arbitrary JSON-compatible attributes (insertion ordered)
        embedding: Vector representation, if computed
        org_id: Owning tenant ("" = unscoped)
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """
    id: str
    name: str
    type: str
    description: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)
    embedding: Optional[List[float]] = None
    org_id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"<Entity(id={self.id}, name={self.name!r}, type={self.type})>"


@dataclass
class Relationship:
    """
    Directed, typed edge between two entities.

    Attributes:
        id: Domain identifier
        source_id: Id of the source entity
        target_id: Id of the target entity
        type: Upper snake case type once stored ("WORKS_ON")
        description: Free text
        strength: Weight in [0.0, 1.0]; 0 means "unset" and is stored as 1.0
        properties: Arbitrary JSON-compatible attributes
        org_id: Owning tenant
        created_at: Creation timestamp
    """
    id: str
    source_id: str
    target_id: str
    type: str
    description: str = ""
    strength: float = 1.0
    properties: Dict[str, Any] = field(default_factory=dict)
    org_id: str = ""
    created_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return (
            f"<Relationship(id={self.id}, "
            f"{self.source_id} -[{self.type}]-> {self.target_id})>"
        )


@dataclass
class GraphContext:
    """
    Neighbourhood of an entity collected by traversal.

    ``entities`` includes the central entity; ``relationships`` contains
    each edge once.
    """
    central_entity: Entity
    depth: int
    entities: List[Entity] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)


@dataclass
class GraphPath:
    """
    Path between two entities.

    Attributes:
        source: Start entity
        target: End entity
        entities: Intermediate entities in path order (endpoints excluded)
        relationships: Edges along the path, in order
        length: Number of hops
    """
    source: Entity
    target: Entity
    entities: List[Entity] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    length: int = 0

    def __repr__(self) -> str:
        return f"<GraphPath({self.source.id} -> {self.target.id}, length={self.length})>"


@dataclass
class ExtractionResult:
    """Entities and relationships extracted from one piece of text."""
    entities: List[Entity] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    source_text: str = ""
    confidence: float = 0.0


@dataclass
class PropertySchema:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = False


@dataclass
class EntityTypeSchema:
    name: str
    description: str = ""
    properties: List[PropertySchema] = field(default_factory=list)


@dataclass
class RelationshipTypeSchema:
    """
    Relationship type with optional endpoint constraints.

    Empty ``source_types`` / ``target_types`` mean "any entity type".
    """
    name: str
    description: str = ""
    source_types: List[str] = field(default_factory=list)
    target_types: List[str] = field(default_factory=list)
    properties: List[PropertySchema] = field(default_factory=list)


@dataclass
class GraphSchema:
    """Entity and relationship types known to a graph."""
    entity_types: List[EntityTypeSchema] = field(default_factory=list)
    relationship_types: List[RelationshipTypeSchema] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.entity_types and not self.relationship_types


@dataclass
class SearchResult:
    """
    One ranked entity returned by search.

    Attributes:
        entity: Matched entity
        score: Normalized relevance in [0, 1]
        context: Neighbouring entities (local search only)
        path: Relationships around the entity (only with include_relationships)
        community_id: Entity type bucket the result came from (global search)
    """
    entity: Entity
    score: float
    context: List[Entity] = field(default_factory=list)
    path: List[Relationship] = field(default_factory=list)
    community_id: Optional[str] = None

    def __repr__(self) -> str:
        return f"<SearchResult(entity={self.entity.id}, score={self.score:.3f})>"


@dataclass
class BatchItemError:
    item_id: str
    message: str


@dataclass
class BatchResult:
    """
    Outcome of a batch write.

    Items rejected by the backend are reported in ``failed`` instead of
    raising, so the caller can decide whether a partial write is acceptable.
    """
    requested: int = 0
    stored: List[str] = field(default_factory=list)
    failed: List[BatchItemError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def __repr__(self) -> str:
        return (
            f"<BatchResult(requested={self.requested}, "
            f"stored={len(self.stored)}, failed={self.failed_count})>"
        )
