"""
Schema Manager
==============

Holds the schema applied by the caller and discovers one from stored data
when none was applied.

Discovery aggregates distinct ``entityType`` / ``relationshipType`` values.
Results can be cached per tenant in a TTLCache (``schema_cache_ttl``).
"""

import copy
from typing import Optional

import structlog

from agentkg.cache import TTLCache
from agentkg.graph import codec
from agentkg.graph.repository import GraphRepository
from agentkg.models import EntityTypeSchema, GraphSchema, RelationshipTypeSchema

log = structlog.get_logger()


class SchemaManager:
    """
    Applied / discovered graph schema.

    Example:
        manager = SchemaManager(repository, TTLCache(ttl=300))
        schema = await manager.discover_schema()
        for et in schema.entity_types:
            print(et.name)
    """

    def __init__(self, repository: GraphRepository, cache: Optional[TTLCache] = None):
        self.repository = repository
        self.cache = cache if cache is not None else TTLCache(ttl=0)
        self._applied: Optional[GraphSchema] = None

    @property
    def applied_schema(self) -> Optional[GraphSchema]:
        return self._applied

    async def apply_schema(self, schema: GraphSchema) -> None:
        """Store a schema; discovery returns it verbatim from now on."""
        self._applied = schema
        self.cache.clear()
        log.info(
            "Schema applied",
            entity_types=len(schema.entity_types),
            relationship_types=len(schema.relationship_types),
        )

    async def discover_schema(self, tenant: Optional[str] = None) -> GraphSchema:
        """
        Return the applied schema, or derive one from stored types.

        Args:
            tenant: Already-resolved tenant ("" = unscoped); None resolves it here

        Aggregation failures are logged; whatever was discovered is returned.
        """
        if self._applied is not None:
            return self._applied

        resolved = self.repository.resolve_tenant(None) if tenant is None else tenant
        cached = self.cache.get(("schema", resolved))
        if cached is not None:
            log.debug("Using cached discovered schema", tenant=resolved)
            return copy.deepcopy(cached)

        schema = GraphSchema()
        complete = True
        backend = self.repository.backend
        tenant_filter = self.repository.tenant_filter(resolved)

        try:
            entity_types = await backend.group_by(
                self.repository.entity_collection, codec.F_ENTITY_TYPE, tenant_filter
            )
            schema.entity_types = [
                EntityTypeSchema(name=name, description=f"Discovered entity type: {name}")
                for name in sorted(entity_types)
            ]
        except Exception as e:
            log.warning("Failed to discover entity types", error=str(e))
            complete = False

        try:
            relationship_types = await backend.group_by(
                self.repository.relationship_collection, codec.F_RELATIONSHIP_TYPE, tenant_filter
            )
            schema.relationship_types = [
                RelationshipTypeSchema(name=name, description=f"Discovered relationship type: {name}")
                for name in sorted(relationship_types)
            ]
        except Exception as e:
            log.warning("Failed to discover relationship types", error=str(e))
            complete = False

        if complete:
            self.cache.put(("schema", resolved), copy.deepcopy(schema))
        log.debug(
            "Schema discovered",
            tenant=resolved,
            entity_types=len(schema.entity_types),
            relationship_types=len(schema.relationship_types),
        )
        return schema
