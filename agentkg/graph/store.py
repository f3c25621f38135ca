"""
KnowledgeGraph
==============

Facade wiring repository, search, traversal, extraction and schema engines
onto one backend and config.

Usage:
    from agentkg import KnowledgeGraph, Entity, Relationship

    async with KnowledgeGraph(config=GraphConfig(), embedder=embedder, llm=llm) as kg:
        await kg.store_entities([
            Entity(id="alice", name="Alice", type="Person", description="Engineer"),
            Entity(id="alpha", name="Project Alpha", type="Project"),
        ])
        await kg.store_relationships([
            Relationship(id="r1", source_id="alice", target_id="alpha", type="works on"),
        ])
        results = await kg.search("engineer")
        ctx = await kg.traverse_from("alice", depth=1)

        acme = kg.with_tenant("acme")      # same backend, tenant "acme" by default
"""

from typing import List, Optional, Sequence

import structlog

from agentkg.cache import TTLCache
from agentkg.config.settings import ExtractionOptions, GraphConfig, SearchOptions, StoreOptions
from agentkg.graph import codec
from agentkg.graph.extraction import ExtractionEngine
from agentkg.graph.repository import GraphRepository
from agentkg.graph.schema import SchemaManager
from agentkg.graph.search import DEFAULT_LIMIT, SearchEngine
from agentkg.graph.traversal import DEFAULT_TRAVERSAL_DEPTH, TraversalEngine
from agentkg.models import (
    BatchResult,
    Direction,
    Entity,
    ExtractionResult,
    GraphContext,
    GraphPath,
    GraphSchema,
    Relationship,
    SearchResult,
)
from agentkg.providers.base import EmbeddingProvider, LLMProvider
from agentkg.storage.backend import ObjectStore, create_object_store

log = structlog.get_logger()


class KnowledgeGraph:
    """
    Knowledge graph store.

    Tenant handling: ``tenant`` is the store default, fixed at construction.
    Per call it is overridden by ``options.tenant`` or an active
    ``tenant_scope``. ``with_tenant`` returns a new facade over the same
    backend and schema.
    """

    def __init__(
        self,
        backend: Optional[ObjectStore] = None,
        config: Optional[GraphConfig] = None,
        embedder: Optional[EmbeddingProvider] = None,
        llm: Optional[LLMProvider] = None,
        tenant: Optional[str] = None,
        schema_cache: Optional[TTLCache] = None,
        schema_manager: Optional[SchemaManager] = None,
    ):
        self.config = config or GraphConfig()
        self.backend = backend or create_object_store(self.config)
        self.embedder = embedder
        self.llm = llm
        self.tenant = self.config.tenant if tenant is None else tenant

        self.repository = GraphRepository(self.backend, self.config, embedder, self.tenant)
        self.traversal = TraversalEngine(self.repository)
        self.searcher = SearchEngine(self.repository, self.traversal)
        self.schema = schema_manager or SchemaManager(
            self.repository,
            schema_cache if schema_cache is not None else TTLCache(ttl=self.config.schema_cache_ttl),
        )
        self.extractor = ExtractionEngine(
            embedder=embedder,
            schema_provider=lambda: self.schema.applied_schema,
        )

        log.info(
            f"KnowledgeGraph initialized - backend={type(self.backend).__name__}, "
            f"prefix={self.config.class_prefix}, tenant={self.tenant or '-'}"
        )

    # Lifecycle

    async def connect(self) -> None:
        """Connect the backend and make sure both collections exist."""
        await self.backend.connect()
        await self.backend.ensure_collections(
            self.config.entity_collection,
            self.config.relationship_collection,
            keyword_fields={
                self.config.entity_collection: codec.ENTITY_INDEXED_FIELDS,
                self.config.relationship_collection: codec.RELATIONSHIP_INDEXED_FIELDS,
            },
        )

    async def close(self) -> None:
        await self.backend.close()

    async def __aenter__(self) -> "KnowledgeGraph":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def with_tenant(self, tenant: str) -> "KnowledgeGraph":
        """New facade sharing backend, providers and schema, with another default tenant."""
        return KnowledgeGraph(
            backend=self.backend,
            config=self.config,
            embedder=self.embedder,
            llm=self.llm,
            tenant=tenant,
            schema_manager=self.schema,
        )

    # Entities

    async def store_entities(
        self,
        entities: Sequence[Entity],
        options: Optional[StoreOptions] = None,
    ) -> BatchResult:
        return await self.repository.store_entities(entities, options)

    async def get_entity(self, entity_id: str, options: Optional[StoreOptions] = None) -> Entity:
        return await self.repository.get_entity(entity_id, options)

    async def update_entity(self, entity: Entity, options: Optional[StoreOptions] = None) -> Entity:
        return await self.repository.update_entity(entity, options)

    async def delete_entity(self, entity_id: str, options: Optional[StoreOptions] = None) -> None:
        await self.repository.delete_entity(entity_id, options)

    async def count_entities(self, options: Optional[StoreOptions] = None) -> int:
        return await self.repository.count_entities(options)

    async def list_entities(self, limit: int = 100, options: Optional[StoreOptions] = None) -> List[Entity]:
        return await self.repository.list_entities(limit, options)

    # Relationships

    async def store_relationships(
        self,
        relationships: Sequence[Relationship],
        options: Optional[StoreOptions] = None,
    ) -> BatchResult:
        return await self.repository.store_relationships(relationships, options)

    async def get_relationship(
        self,
        relationship_id: str,
        options: Optional[StoreOptions] = None,
    ) -> Relationship:
        return await self.repository.get_relationship(relationship_id, options)

    async def get_relationships(
        self,
        entity_id: str,
        direction: Direction = Direction.BOTH,
        options: Optional[SearchOptions] = None,
    ) -> List[Relationship]:
        return await self.repository.get_relationships(entity_id, direction, options)

    async def delete_relationship(
        self,
        relationship_id: str,
        options: Optional[StoreOptions] = None,
    ) -> None:
        await self.repository.delete_relationship(relationship_id, options)

    # Search

    async def search(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        return await self.searcher.search(query, limit, options)

    async def local_search(
        self,
        query: str,
        entity_id: Optional[str] = None,
        depth: int = 0,
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        return await self.searcher.local_search(query, entity_id, depth, options)

    async def global_search(
        self,
        query: str,
        community_level: int = 1,
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        return await self.searcher.global_search(query, community_level, options)

    # Traversal

    async def traverse_from(
        self,
        entity_id: str,
        depth: int = DEFAULT_TRAVERSAL_DEPTH,
        options: Optional[SearchOptions] = None,
    ) -> GraphContext:
        return await self.traversal.traverse_from(entity_id, depth, options)

    async def shortest_path(
        self,
        source_id: str,
        target_id: str,
        options: Optional[SearchOptions] = None,
    ) -> GraphPath:
        return await self.traversal.shortest_path(source_id, target_id, options)

    # Extraction and schema

    async def extract_from_text(
        self,
        text: str,
        llm: Optional[LLMProvider] = None,
        options: Optional[ExtractionOptions] = None,
    ) -> ExtractionResult:
        """Extract with ``llm``, or the store's LLM when omitted."""
        return await self.extractor.extract_from_text(text, llm or self.llm, options)

    async def apply_schema(self, schema: GraphSchema) -> None:
        await self.schema.apply_schema(schema)

    async def discover_schema(self) -> GraphSchema:
        return await self.schema.discover_schema(self.repository.resolve_tenant(None))

    def __repr__(self) -> str:
        return f"<KnowledgeGraph(prefix={self.config.class_prefix}, tenant={self.tenant or '-'})>"
