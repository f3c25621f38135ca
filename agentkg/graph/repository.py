"""
Entity/Relationship Repository
==============================

CRUD for entities and relationships on top of an ObjectStore.

Every call resolves its tenant (explicit option > ambient tenant_scope >
store default > unscoped) and adds an ``orgId == tenant`` clause to each
query when the tenant is non-empty. Inputs are validated before the first
backend call.
"""

import dataclasses
from typing import List, NamedTuple, Optional, Sequence

import structlog

from agentkg.config.settings import GraphConfig, SearchOptions, StoreOptions
from agentkg.errors import (
    BackendError,
    EntityNotFoundError,
    InvalidIDError,
    InvalidPropertiesError,
    InvalidStrengthError,
    MissingRequiredFieldError,
    RelationshipNotFoundError,
    UpstreamError,
)
from agentkg.graph import codec
from agentkg.models import BatchItemError, BatchResult, Direction, Entity, Relationship
from agentkg.providers.base import EmbeddingProvider
from agentkg.storage.backend.base import Eq, Filter, NewObject, ObjectStore, Or, all_of, any_of
from agentkg.tenancy import resolve_tenant

log = structlog.get_logger()

KIND_ENTITY = "entity"
KIND_RELATIONSHIP = "relationship"


class ResolvedHandle(NamedTuple):
    """Backend handle of a stored object plus its current record."""
    handle: str
    record: dict


def validate_entity(entity: Entity) -> None:
    if not entity.id:
        raise InvalidIDError("entity id must not be empty")
    if not entity.name:
        raise MissingRequiredFieldError("name", entity.id)
    if not entity.type:
        raise MissingRequiredFieldError("type", entity.id)
    _validate_properties(entity.properties, KIND_ENTITY, entity.id)


def _validate_properties(properties, kind: str, item_id: str) -> None:
    try:
        codec.encode_properties(properties)
    except (TypeError, ValueError) as e:
        raise InvalidPropertiesError(f"{kind} {item_id}: properties are not JSON-encodable: {e}") from e


def validate_relationship(rel: Relationship) -> None:
    if not rel.id:
        raise InvalidIDError("relationship id must not be empty")
    if not rel.source_id:
        raise MissingRequiredFieldError("source_id", rel.id)
    if not rel.target_id:
        raise MissingRequiredFieldError("target_id", rel.id)
    if not rel.type:
        raise MissingRequiredFieldError("type", rel.id)
    if not 0.0 <= rel.strength <= 1.0:
        raise InvalidStrengthError(
            f"relationship {rel.id}: strength must be in [0.0, 1.0], got {rel.strength}"
        )
    _validate_properties(rel.properties, KIND_RELATIONSHIP, rel.id)


class GraphRepository:
    """
    Entity and relationship storage.

    Example:
        repo = GraphRepository(backend, config, embedder=embedder)
        result = await repo.store_entities([Entity(id="e1", name="Alice", type="Person")])
        alice = await repo.get_entity("e1")
    """

    def __init__(
        self,
        backend: ObjectStore,
        config: GraphConfig,
        embedder: Optional[EmbeddingProvider] = None,
        tenant: str = "",
    ):
        self.backend = backend
        self.config = config
        self.embedder = embedder
        self.default_tenant = tenant

    @property
    def entity_collection(self) -> str:
        return self.config.entity_collection

    @property
    def relationship_collection(self) -> str:
        return self.config.relationship_collection

    def resolve_tenant(self, explicit: Optional[str] = None) -> str:
        return resolve_tenant(explicit, self.default_tenant)

    @staticmethod
    def tenant_filter(tenant: str) -> Optional[Filter]:
        return Eq(codec.F_ORG_ID, tenant) if tenant else None

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    async def _embed_entity(self, entity: Entity) -> List[float]:
        text = entity.description or entity.name
        try:
            return await self.embedder.embed(text)
        except Exception as e:
            raise UpstreamError(f"failed to generate embedding for entity {entity.id}: {e}") from e

    async def store_entities(
        self,
        entities: Sequence[Entity],
        options: Optional[StoreOptions] = None,
    ) -> BatchResult:
        """
        Insert entities in batches.

        Items rejected by the backend end up in ``BatchResult.failed``.
        A failed batch submission raises BackendError; earlier batches stay
        committed.
        """
        options = options or StoreOptions()
        if not entities:
            return BatchResult()

        for entity in entities:
            validate_entity(entity)

        tenant = self.resolve_tenant(options.tenant)
        generate = options.generate_embeddings and self.embedder is not None
        now = codec.utc_now()

        prepared: List[Entity] = []
        for entity in entities:
            item = dataclasses.replace(
                entity,
                properties=dict(entity.properties or {}),
                org_id=tenant or entity.org_id,
                created_at=entity.created_at or now,
                updated_at=entity.updated_at or now,
            )
            if generate:
                item.embedding = await self._embed_entity(item)
            prepared.append(item)

        result = BatchResult(requested=len(prepared))
        batch_size = options.effective_batch_size

        for start in range(0, len(prepared), batch_size):
            batch = prepared[start:start + batch_size]
            objects = [NewObject(codec.entity_to_record(e), e.embedding) for e in batch]
            try:
                items = await self.backend.insert_many(self.entity_collection, objects)
            except BackendError:
                log.error(
                    f"Entity batch insert failed at offset {start}",
                    batch_size=len(batch),
                    stored_so_far=len(result.stored),
                )
                raise
            for entity, item in zip(batch, items):
                if item.ok:
                    result.stored.append(entity.id)
                else:
                    log.warning(f"Failed to store entity {entity.id}", error=item.error)
                    result.failed.append(BatchItemError(entity.id, item.error or "unknown error"))

        log.info(
            f"Stored {len(result.stored)}/{result.requested} entities",
            tenant=tenant,
            failed=result.failed_count,
        )
        return result

    async def _resolve_handle(self, kind: str, item_id: str, tenant: str) -> ResolvedHandle:
        """
        Find the backend handle for a domain id within a tenant.

        Raises:
            EntityNotFoundError / RelationshipNotFoundError
        """
        if kind == KIND_ENTITY:
            collection, id_field, not_found = self.entity_collection, codec.F_ENTITY_ID, EntityNotFoundError
        else:
            collection, id_field, not_found = (
                self.relationship_collection, codec.F_RELATIONSHIP_ID, RelationshipNotFoundError
            )

        objects = await self.backend.fetch(
            collection,
            all_of(Eq(id_field, item_id), self.tenant_filter(tenant)),
            limit=1,
        )
        if not objects:
            log.warning(f"{kind.capitalize()} not found: {item_id}", tenant=tenant)
            raise not_found(f"{kind} {item_id} not found")
        return ResolvedHandle(objects[0].handle, objects[0].properties)

    async def get_entity(self, entity_id: str, options: Optional[StoreOptions] = None) -> Entity:
        options = options or StoreOptions()
        if not entity_id:
            raise InvalidIDError("entity id must not be empty")
        tenant = self.resolve_tenant(options.tenant)

        objects = await self.backend.fetch(
            self.entity_collection,
            all_of(Eq(codec.F_ENTITY_ID, entity_id), self.tenant_filter(tenant)),
            limit=1,
        )
        if not objects:
            log.warning(f"Entity not found: {entity_id}", tenant=tenant)
            raise EntityNotFoundError(f"entity {entity_id} not found")
        return codec.entity_from_object(objects[0])

    async def update_entity(self, entity: Entity, options: Optional[StoreOptions] = None) -> Entity:
        """
        Overwrite a stored entity.

        Properties are replaced wholesale; created_at is kept from the
        stored record and updated_at is set to now.
        """
        options = options or StoreOptions()
        validate_entity(entity)
        tenant = self.resolve_tenant(options.tenant)

        resolved = await self._resolve_handle(KIND_ENTITY, entity.id, tenant)

        updated = dataclasses.replace(
            entity,
            properties=dict(entity.properties or {}),
            org_id=tenant or resolved.record.get(codec.F_ORG_ID) or "",
            created_at=codec.parse_timestamp(resolved.record.get(codec.F_CREATED_AT)) or entity.created_at,
            updated_at=codec.utc_now(),
        )
        if options.generate_embeddings and self.embedder is not None:
            updated.embedding = await self._embed_entity(updated)

        await self.backend.update(
            self.entity_collection,
            resolved.handle,
            codec.entity_to_record(updated),
            updated.embedding,
        )
        log.info(f"Updated entity {entity.id}", tenant=tenant)
        return updated

    async def delete_entity(self, entity_id: str, options: Optional[StoreOptions] = None) -> None:
        options = options or StoreOptions()
        if not entity_id:
            raise InvalidIDError("entity id must not be empty")
        tenant = self.resolve_tenant(options.tenant)

        resolved = await self._resolve_handle(KIND_ENTITY, entity_id, tenant)
        await self.backend.delete(self.entity_collection, resolved.handle)
        log.info(f"Deleted entity {entity_id}", tenant=tenant)

    async def count_entities(self, options: Optional[StoreOptions] = None) -> int:
        options = options or StoreOptions()
        tenant = self.resolve_tenant(options.tenant)
        return await self.backend.count(self.entity_collection, self.tenant_filter(tenant))

    async def list_entities(self, limit: int = 100, options: Optional[StoreOptions] = None) -> List[Entity]:
        options = options or StoreOptions()
        tenant = self.resolve_tenant(options.tenant)
        objects = await self.backend.fetch(
            self.entity_collection,
            self.tenant_filter(tenant),
            limit=limit if limit > 0 else 100,
        )
        return [codec.entity_from_object(obj) for obj in objects]

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    async def store_relationships(
        self,
        relationships: Sequence[Relationship],
        options: Optional[StoreOptions] = None,
    ) -> BatchResult:
        """Insert relationships in batches. Same failure semantics as store_entities."""
        options = options or StoreOptions()
        if not relationships:
            return BatchResult()

        for rel in relationships:
            validate_relationship(rel)

        tenant = self.resolve_tenant(options.tenant)
        now = codec.utc_now()

        prepared = [
            dataclasses.replace(
                rel,
                type=codec.normalize_relationship_type(rel.type),
                strength=rel.strength or 1.0,
                properties=dict(rel.properties or {}),
                org_id=tenant or rel.org_id,
                created_at=rel.created_at or now,
            )
            for rel in relationships
        ]

        result = BatchResult(requested=len(prepared))
        batch_size = options.effective_batch_size

        for start in range(0, len(prepared), batch_size):
            batch = prepared[start:start + batch_size]
            objects = [NewObject(codec.relationship_to_record(r)) for r in batch]
            try:
                items = await self.backend.insert_many(self.relationship_collection, objects)
            except BackendError:
                log.error(
                    f"Relationship batch insert failed at offset {start}",
                    batch_size=len(batch),
                    stored_so_far=len(result.stored),
                )
                raise
            for rel, item in zip(batch, items):
                if item.ok:
                    result.stored.append(rel.id)
                else:
                    log.warning(f"Failed to store relationship {rel.id}", error=item.error)
                    result.failed.append(BatchItemError(rel.id, item.error or "unknown error"))

        log.info(
            f"Stored {len(result.stored)}/{result.requested} relationships",
            tenant=tenant,
            failed=result.failed_count,
        )
        return result

    async def get_relationship(
        self,
        relationship_id: str,
        options: Optional[StoreOptions] = None,
    ) -> Relationship:
        options = options or StoreOptions()
        if not relationship_id:
            raise InvalidIDError("relationship id must not be empty")
        tenant = self.resolve_tenant(options.tenant)

        objects = await self.backend.fetch(
            self.relationship_collection,
            all_of(Eq(codec.F_RELATIONSHIP_ID, relationship_id), self.tenant_filter(tenant)),
            limit=1,
        )
        if not objects:
            log.warning(f"Relationship not found: {relationship_id}", tenant=tenant)
            raise RelationshipNotFoundError(f"relationship {relationship_id} not found")
        return codec.relationship_from_object(objects[0])

    async def get_relationships(
        self,
        entity_id: str,
        direction: Direction = Direction.BOTH,
        options: Optional[SearchOptions] = None,
    ) -> List[Relationship]:
        """
        Relationships touching an entity.

        BOTH returns each relationship once, even self-loops.
        """
        options = options or SearchOptions()
        if not entity_id:
            raise InvalidIDError("entity id must not be empty")
        tenant = self.resolve_tenant(options.tenant)

        direction = Direction(direction)
        if direction == Direction.OUTGOING:
            endpoint = Eq(codec.F_SOURCE_ID, entity_id)
        elif direction == Direction.INCOMING:
            endpoint = Eq(codec.F_TARGET_ID, entity_id)
        else:
            endpoint = Or(Eq(codec.F_SOURCE_ID, entity_id), Eq(codec.F_TARGET_ID, entity_id))

        types = [codec.normalize_relationship_type(t) for t in options.relationship_types]
        flt = all_of(
            endpoint,
            any_of(codec.F_RELATIONSHIP_TYPE, types),
            self.tenant_filter(tenant),
        )
        objects = await self.backend.fetch(self.relationship_collection, flt)

        seen = set()
        relationships = []
        for obj in objects:
            rel = codec.relationship_from_object(obj)
            if rel.id in seen:
                continue
            seen.add(rel.id)
            relationships.append(rel)
        return relationships

    async def delete_relationship(
        self,
        relationship_id: str,
        options: Optional[StoreOptions] = None,
    ) -> None:
        options = options or StoreOptions()
        if not relationship_id:
            raise InvalidIDError("relationship id must not be empty")
        tenant = self.resolve_tenant(options.tenant)

        resolved = await self._resolve_handle(KIND_RELATIONSHIP, relationship_id, tenant)
        await self.backend.delete(self.relationship_collection, resolved.handle)
        log.info(f"Deleted relationship {relationship_id}", tenant=tenant)


__all__ = [
    "GraphRepository",
    "ResolvedHandle",
    "validate_entity",
    "validate_relationship",
]
