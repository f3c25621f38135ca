"""
Search Engine
=============

Entity retrieval in three modes plus two graph-aware variants.

Modes:
    VECTOR   nearest neighbours of the query embedding, score = (1 + cos) / 2
    KEYWORD  BM25 over name, description and entityType, score = s / (s + 1)
    HYBRID   relative-score fusion of both (alpha = 0.5); falls back to
             KEYWORD when no embedder is configured or embedding fails

Graph-aware:
    local_search   ranked results enriched with traversal context
    global_search  per-entity-type ("community") search, merged by score
"""

from typing import List, Optional

import structlog

from agentkg.config.settings import SearchOptions
from agentkg.errors import (
    EmptyQueryError,
    EntityNotFoundError,
    InvalidDepthError,
    NoEmbedderError,
    UpstreamError,
)
from agentkg.graph import codec
from agentkg.graph.repository import GraphRepository
from agentkg.graph.traversal import DEFAULT_TRAVERSAL_DEPTH, TraversalEngine
from agentkg.models import GraphContext, SearchMode, SearchResult
from agentkg.storage.backend.base import ScoredObject, all_of, any_of

log = structlog.get_logger()

DEFAULT_LIMIT = 10
HYBRID_ALPHA = 0.5
LOCAL_SEARCH_LIMIT = 10
GLOBAL_FALLBACK_LIMIT = 20
RESULTS_PER_COMMUNITY = 5


class SearchEngine:
    """
    Entity search over the repository's backend.

    Example:
        engine = SearchEngine(repository, traversal)
        results = await engine.search("graph databases", limit=5)
        for r in results:
            print(f"{r.entity.name}: {r.score:.2f}")
    """

    def __init__(self, repository: GraphRepository, traversal: TraversalEngine):
        self.repository = repository
        self.traversal = traversal

    @property
    def embedder(self):
        return self.repository.embedder

    async def _embed_query(self, query: str) -> List[float]:
        try:
            return await self.embedder.embed(query)
        except Exception as e:
            raise UpstreamError(f"failed to embed query: {e}") from e

    async def search(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """
        Rank entities against a query.

        Args:
            query: Search text (must be non-empty)
            limit: Max results (<= 0 means 10)
            options: Mode, min_score, entity_types, tenant

        Raises:
            EmptyQueryError: Empty query
            NoEmbedderError: VECTOR mode without embedder
        """
        options = options or SearchOptions()
        if not query or not query.strip():
            raise EmptyQueryError("search query must not be empty")
        if limit <= 0:
            limit = DEFAULT_LIMIT

        tenant = self.repository.resolve_tenant(options.tenant)
        flt = all_of(
            self.repository.tenant_filter(tenant),
            any_of(codec.F_ENTITY_TYPE, list(options.entity_types)),
        )
        collection = self.repository.entity_collection
        backend = self.repository.backend
        mode = SearchMode(options.mode)

        if mode == SearchMode.VECTOR:
            if self.embedder is None:
                raise NoEmbedderError("vector search requires an embedding provider")
            vector = await self._embed_query(query)
            hits = await backend.near_vector(collection, vector, flt, limit)

        elif mode == SearchMode.KEYWORD:
            hits = await backend.bm25(collection, query, codec.KEYWORD_FIELDS, flt, limit)

        else:
            vector = None
            if self.embedder is not None:
                try:
                    vector = await self._embed_query(query)
                except UpstreamError as e:
                    log.warning("Query embedding failed, falling back to keyword search", error=str(e))
            else:
                log.debug("No embedder configured, hybrid search uses keyword ranking")

            if vector is None:
                hits = await backend.bm25(collection, query, codec.KEYWORD_FIELDS, flt, limit)
            else:
                hits = await backend.hybrid(
                    collection, query, vector, codec.KEYWORD_FIELDS, flt, limit, alpha=HYBRID_ALPHA
                )

        results = self._to_results(hits, options.min_score)
        log.debug(
            f"Search completed: {len(results)} results",
            query=query,
            mode=mode.value,
            tenant=tenant,
        )
        return results

    @staticmethod
    def _to_results(hits: List[ScoredObject], min_score: float) -> List[SearchResult]:
        return [
            SearchResult(entity=codec.entity_from_object(hit.object), score=hit.score)
            for hit in hits
            if hit.score >= min_score
        ]

    @staticmethod
    def _attach(result: SearchResult, context: GraphContext, include_relationships: bool) -> None:
        result.context = list(context.entities)
        if include_relationships:
            result.path = list(context.relationships)

    async def local_search(
        self,
        query: str,
        entity_id: Optional[str] = None,
        depth: int = 0,
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """
        Search, then enrich with graph context.

        With ``entity_id`` every result receives that entity's neighbourhood;
        otherwise only the top result receives its own. Relationships are
        attached only with ``include_relationships``.

        Raises:
            EmptyQueryError: Empty query
            InvalidDepthError: Negative depth
        """
        options = options or SearchOptions()
        if not query or not query.strip():
            raise EmptyQueryError("search query must not be empty")
        if depth < 0:
            raise InvalidDepthError(f"depth must be >= 0, got {depth}")
        if depth == 0:
            depth = DEFAULT_TRAVERSAL_DEPTH

        results = await self.search(query, LOCAL_SEARCH_LIMIT, options)

        if entity_id:
            try:
                context = await self.traversal.traverse_from(entity_id, depth, options)
            except EntityNotFoundError:
                log.warning(f"Local search anchor entity not found: {entity_id}")
                context = None
            if context is not None:
                for result in results:
                    self._attach(result, context, options.include_relationships)

        elif results:
            top_id = results[0].entity.id
            try:
                context = await self.traversal.traverse_from(top_id, depth, options)
                self._attach(results[0], context, options.include_relationships)
            except Exception as e:
                log.warning(f"Failed to get context for top result {top_id}", error=str(e))

        log.debug(
            "Local search completed",
            query=query,
            entity_id=entity_id,
            depth=depth,
            count=len(results),
        )
        return results

    async def global_search(
        self,
        query: str,
        community_level: int = 1,
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """
        Search each entity type separately and merge.

        Entity types play the role of communities: up to 5 results per type,
        tagged with ``community_id``, merged by descending score.
        ``community_level`` is accepted for interface compatibility; only
        level 1 (entity types) exists.
        """
        options = options or SearchOptions()
        if not query or not query.strip():
            raise EmptyQueryError("search query must not be empty")

        tenant = self.repository.resolve_tenant(options.tenant)
        try:
            counts = await self.repository.backend.group_by(
                self.repository.entity_collection,
                codec.F_ENTITY_TYPE,
                self.repository.tenant_filter(tenant),
            )
        except Exception as e:
            log.warning(
                "Failed to discover entity types, using search without community grouping",
                error=str(e),
            )
            return await self.search(query, GLOBAL_FALLBACK_LIMIT, options)

        communities = sorted(counts)
        if options.entity_types:
            wanted = set(options.entity_types)
            communities = [c for c in communities if c in wanted]

        merged: List[SearchResult] = []
        for community in communities:
            try:
                results = await self.search(
                    query, RESULTS_PER_COMMUNITY, options.with_entity_types(community)
                )
            except Exception as e:
                log.warning(f"Failed to search in entity type {community}", error=str(e))
                continue
            for result in results:
                result.community_id = community
            merged.extend(results)

        merged.sort(key=lambda r: r.score, reverse=True)
        log.debug(
            "Global search completed",
            query=query,
            communities=len(communities),
            count=len(merged),
            tenant=tenant,
        )
        return merged
