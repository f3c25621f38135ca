"""
agentkg: Knowledge graph memory for agents
==========================================

GraphRAG store on top of a vector object store: entities and relationships
with embeddings, hybrid search, bounded traversal, LLM extraction and
per-tenant isolation.

Quick Start:
    from agentkg import KnowledgeGraph, GraphConfig, Entity

    kg = KnowledgeGraph(config=GraphConfig(), embedder=embedder, llm=llm)
    await kg.connect()

    await kg.store_entities([Entity(id="e1", name="Alice", type="Person")])
    results = await kg.search("Alice")

    extracted = await kg.extract_from_text("Alice works on Project Alpha.")

Components:
- graph: KnowledgeGraph facade and its engines
- storage: ObjectStore interface, in-memory and Qdrant backends
- providers: embedding / LLM interfaces, OpenAI-compatible clients
- tools: agent tools exposing the graph (graphrag_*)
"""

__version__ = "0.1.0"

from agentkg.config import ExtractionOptions, GraphConfig, SearchOptions, StoreOptions
from agentkg.errors import (
    BackendError,
    EmptyQueryError,
    EntityNotFoundError,
    ExtractionFailedError,
    GraphError,
    InvalidArgumentError,
    InvalidPropertiesError,
    InvalidStrengthError,
    NoEmbedderError,
    NoLLMError,
    NotFoundError,
    PathNotFoundError,
    RelationshipNotFoundError,
    UpstreamError,
)
from agentkg.graph import KnowledgeGraph
from agentkg.models import (
    BatchResult,
    Direction,
    Entity,
    EntityTypeSchema,
    ExtractionResult,
    GraphContext,
    GraphPath,
    GraphSchema,
    PropertySchema,
    Relationship,
    RelationshipTypeSchema,
    SearchMode,
    SearchResult,
)
from agentkg.tenancy import tenant_scope

__all__ = [
    # Core
    "KnowledgeGraph",
    "GraphConfig",
    "StoreOptions",
    "SearchOptions",
    "ExtractionOptions",
    "tenant_scope",
    # Models
    "Entity",
    "Relationship",
    "Direction",
    "SearchMode",
    "SearchResult",
    "GraphContext",
    "GraphPath",
    "ExtractionResult",
    "BatchResult",
    "GraphSchema",
    "EntityTypeSchema",
    "RelationshipTypeSchema",
    "PropertySchema",
    # Errors
    "GraphError",
    "InvalidArgumentError",
    "InvalidPropertiesError",
    "InvalidStrengthError",
    "EmptyQueryError",
    "NotFoundError",
    "EntityNotFoundError",
    "RelationshipNotFoundError",
    "PathNotFoundError",
    "NoEmbedderError",
    "NoLLMError",
    "UpstreamError",
    "BackendError",
    "ExtractionFailedError",
]
