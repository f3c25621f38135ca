"""
Traversal Engine
================

Graph walks built from repository lookups (the object store has no native
traversal): bounded breadth-first context expansion and unweighted shortest
path.

Both walks are sequential: one entity fetch per node and one relationship
query per node and direction.
"""

from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

import structlog

from agentkg.config.settings import SearchOptions, StoreOptions
from agentkg.errors import (
    EntityNotFoundError,
    InvalidDepthError,
    InvalidIDError,
    MaxDepthExceededError,
    PathNotFoundError,
)
from agentkg.graph.repository import GraphRepository
from agentkg.models import Direction, Entity, GraphContext, GraphPath, Relationship

log = structlog.get_logger()

DEFAULT_TRAVERSAL_DEPTH = 2
MAX_TRAVERSAL_DEPTH = 5
DEFAULT_PATH_DEPTH = 5


def normalize_depth(depth: int) -> int:
    """Validate a traversal depth; 0 selects the default."""
    if depth < 0:
        raise InvalidDepthError(f"depth must be >= 0, got {depth}")
    if depth == 0:
        return DEFAULT_TRAVERSAL_DEPTH
    if depth > MAX_TRAVERSAL_DEPTH:
        raise MaxDepthExceededError(f"depth {depth} exceeds maximum of {MAX_TRAVERSAL_DEPTH}")
    return depth


class TraversalEngine:
    """
    Context expansion and path finding.

    Example:
        engine = TraversalEngine(repository)
        ctx = await engine.traverse_from("alice", depth=1)
        path = await engine.shortest_path("alice", "project-x")
    """

    def __init__(self, repository: GraphRepository):
        self.repository = repository

    async def traverse_from(
        self,
        entity_id: str,
        depth: int = DEFAULT_TRAVERSAL_DEPTH,
        options: Optional[SearchOptions] = None,
    ) -> GraphContext:
        """
        Collect the neighbourhood of an entity.

        Levels 0..depth are visited breadth first. Each visited entity
        contributes its incoming and outgoing relationships (filtered by
        ``options.relationship_types``), and their unvisited endpoints form
        the next level.

        Raises:
            InvalidIDError: Empty id
            InvalidDepthError: Negative depth
            MaxDepthExceededError: depth > 5
            EntityNotFoundError: Start entity does not exist
        """
        options = options or SearchOptions()
        if not entity_id:
            raise InvalidIDError("entity id must not be empty")
        depth = normalize_depth(depth)

        tenant = self.repository.resolve_tenant(options.tenant)
        store_opts = options.with_tenant(tenant).store_options()
        rel_opts = SearchOptions(relationship_types=options.relationship_types, tenant=tenant)

        visited = set()
        entities: List[Entity] = []
        relationships: Dict[str, Relationship] = {}
        central: Optional[Entity] = None
        current_level = [entity_id]

        for level in range(depth + 1):
            if not current_level:
                break
            next_level: List[str] = []

            for current_id in current_level:
                if current_id in visited:
                    continue
                visited.add(current_id)
                try:
                    entity = await self.repository.get_entity(current_id, store_opts)
                except EntityNotFoundError:
                    log.warning(f"Skipping missing entity during traversal: {current_id}", level=level)
                    continue

                entities.append(entity)
                if level == 0:
                    central = entity

                try:
                    outgoing = await self.repository.get_relationships(current_id, Direction.OUTGOING, rel_opts)
                    incoming = await self.repository.get_relationships(current_id, Direction.INCOMING, rel_opts)
                except Exception as e:
                    log.warning(f"Relationship lookup failed for {current_id}", error=str(e))
                    continue

                for rel in outgoing + incoming:
                    if rel.id not in relationships:
                        relationships[rel.id] = rel
                    other = rel.target_id if rel.source_id == current_id else rel.source_id
                    if other not in visited:
                        next_level.append(other)

            current_level = next_level

        if central is None:
            raise EntityNotFoundError(f"entity {entity_id} not found")

        log.debug(
            f"Traversal from {entity_id} complete",
            depth=depth,
            entities=len(entities),
            relationships=len(relationships),
        )
        return GraphContext(
            central_entity=central,
            depth=depth,
            entities=entities,
            relationships=list(relationships.values()),
        )

    async def shortest_path(
        self,
        source_id: str,
        target_id: str,
        options: Optional[SearchOptions] = None,
    ) -> GraphPath:
        """
        Fewest-hop path between two entities, edges walked in either direction.

        ``options.max_depth`` bounds the number of hops (default 5).

        Raises:
            InvalidIDError: Empty source or target id
            EntityNotFoundError: Source or target missing when building the path
            PathNotFoundError: No path within the bound
        """
        options = options or SearchOptions()
        if not source_id or not target_id:
            raise InvalidIDError("source and target ids must not be empty")

        tenant = self.repository.resolve_tenant(options.tenant)
        store_opts = options.with_tenant(tenant).store_options()

        if source_id == target_id:
            entity = await self.repository.get_entity(source_id, store_opts)
            return GraphPath(source=entity, target=entity, length=0)

        max_depth = options.max_depth if options.max_depth and options.max_depth > 0 else DEFAULT_PATH_DEPTH
        rel_opts = SearchOptions(relationship_types=options.relationship_types, tenant=tenant)

        # (entity id, entity ids from source, edges walked)
        queue: Deque[Tuple[str, List[str], List[Relationship]]] = deque([(source_id, [source_id], [])])
        visited = set()

        while queue:
            current_id, path, edges = queue.popleft()

            if current_id == target_id:
                return await self._build_path(path, edges, store_opts)

            if current_id in visited:
                continue
            visited.add(current_id)

            if len(path) - 1 >= max_depth:
                continue

            try:
                neighbours = await self.repository.get_relationships(current_id, Direction.BOTH, rel_opts)
            except Exception as e:
                log.warning(f"Relationship lookup failed for {current_id}", error=str(e))
                continue

            for rel in neighbours:
                next_id = rel.source_id if rel.target_id == current_id else rel.target_id
                if next_id not in visited:
                    queue.append((next_id, path + [next_id], edges + [rel]))

        raise PathNotFoundError(f"no path from {source_id} to {target_id} within {max_depth} hops")

    async def _build_path(
        self,
        entity_ids: List[str],
        edges: List[Relationship],
        store_opts: StoreOptions,
    ) -> GraphPath:
        source = await self.repository.get_entity(entity_ids[0], store_opts)
        target = await self.repository.get_entity(entity_ids[-1], store_opts)

        intermediate = []
        for entity_id in entity_ids[1:-1]:
            try:
                intermediate.append(await self.repository.get_entity(entity_id, store_opts))
            except EntityNotFoundError:
                log.warning(f"Intermediate entity missing from path: {entity_id}")

        return GraphPath(
            source=source,
            target=target,
            entities=intermediate,
            relationships=list(edges),
            length=len(entity_ids) - 1,
        )
