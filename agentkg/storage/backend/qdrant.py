"""
Qdrant Object Store
===================

ObjectStore backed by a Qdrant server.

qdrant-client is synchronous, so every call runs in the default executor
and is bounded by ``GraphConfig.timeout_ms``.

Layout:
    - one Qdrant collection per logical collection
    - point id = backend handle (UUID), payload = record fields
    - entity vectors live under the named vector "embedding"; the
      relationship collection has no vectors
    - keyword payload indexes on the filter/group fields

Keyword search: Qdrant has no BM25 over payload text, so candidates matching
the filter are scrolled and ranked locally with the shared BM25 scorer.
Hybrid search fuses that ranking with ``query_points`` results.
"""

import asyncio
import functools
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import structlog
from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter as QdrantFilter,
    MatchValue,
    PayloadSchemaType,
    PointIdsList,
    PointStruct,
    PointVectors,
    VectorParams,
)

from agentkg.config.settings import GraphConfig
from agentkg.errors import BackendError
from agentkg.providers.similarity import certainty
from agentkg.storage.backend.base import (
    And,
    Eq,
    Filter,
    ItemResult,
    NewObject,
    ObjectStore,
    Or,
    ScoredObject,
    StoredObject,
)
from agentkg.storage.backend.scoring import (
    bm25_scores,
    normalize_keyword_score,
    relative_score_fusion,
)

log = structlog.get_logger()

VECTOR_NAME = "embedding"
SCROLL_PAGE_SIZE = 256
FACET_LIMIT = 1000
OVER_RETRIEVE_FACTOR = 3


def to_qdrant_filter(flt: Optional[Filter]) -> Optional[QdrantFilter]:
    """
    Translate an Eq/And/Or tree into a Qdrant Filter.

    And -> must, Or -> should; nested groups become nested Filters.
    """
    if flt is None:
        return None
    node = _translate(flt)
    if isinstance(node, FieldCondition):
        return QdrantFilter(must=[node])
    return node


def _translate(flt: Filter) -> Union[FieldCondition, QdrantFilter]:
    if isinstance(flt, Eq):
        return FieldCondition(key=flt.field, match=MatchValue(value=flt.value))
    if isinstance(flt, And):
        return QdrantFilter(must=[_translate(op) for op in flt.operands])
    if isinstance(flt, Or):
        return QdrantFilter(should=[_translate(op) for op in flt.operands])
    raise TypeError(f"Unsupported filter: {flt!r}")


class QdrantObjectStore(ObjectStore):
    """
    Qdrant implementation of ObjectStore.

    Example:
        store = QdrantObjectStore(GraphConfig(backend="qdrant", host="localhost"))
        await store.connect()
        await store.ensure_collections("GraphEntity", "GraphRelationship")
        hits = await store.near_vector("GraphEntity", vector, limit=5)
        await store.close()
    """

    def __init__(self, config: Optional[GraphConfig] = None, client: Optional[QdrantClient] = None):
        self.config = config or GraphConfig(backend="qdrant")
        self._client: Optional[QdrantClient] = client
        self._connected = client is not None

        log.info(
            f"QdrantObjectStore initialized - "
            f"host={self.config.host}:{self.config.port}, "
            f"prefix={self.config.class_prefix}"
        )

    async def connect(self) -> None:
        """Open the client (no-op when a client was injected)."""
        if self._connected:
            log.debug("Already connected to Qdrant")
            return

        loop = asyncio.get_event_loop()
        self._client = await loop.run_in_executor(None, self._connect_sync)
        self._connected = True
        log.info(f"Connected to Qdrant at {self.config.host}:{self.config.port}")

    def _connect_sync(self) -> QdrantClient:
        return QdrantClient(
            host=self.config.host,
            port=self.config.port,
            api_key=self.config.api_key,
            timeout=max(1, int(self.config.timeout_seconds)),
        )

    async def close(self) -> None:
        if not self._connected:
            return
        if self._client is not None:
            self._client.close()
        self._connected = False
        self._client = None
        log.info("Disconnected from Qdrant")

    async def _run(self, method: str, *args, **kwargs) -> Any:
        """Run a sync client method in the executor with the configured timeout."""
        if not self._connected or self._client is None:
            raise BackendError("Not connected to Qdrant. Call connect() first.")

        loop = asyncio.get_event_loop()
        call = functools.partial(getattr(self._client, method), *args, **kwargs)
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, call),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise BackendError(
                f"Qdrant call {method} timed out after {self.config.timeout_ms}ms"
            ) from e
        except Exception as e:
            raise BackendError(f"Qdrant call {method} failed: {e}") from e

    async def ensure_collections(
        self,
        entity_collection: str,
        relationship_collection: str,
        keyword_fields: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        """
        Create missing collections and their payload indexes.

        Args:
            keyword_fields: collection name -> payload fields to index as keywords
        """
        response = await self._run("get_collections")
        existing = {c.name for c in response.collections}

        if entity_collection not in existing:
            await self._run(
                "create_collection",
                collection_name=entity_collection,
                vectors_config={
                    VECTOR_NAME: VectorParams(size=self.config.vector_size, distance=Distance.COSINE),
                },
            )
            log.info(f"Created Qdrant collection: {entity_collection}")

        if relationship_collection not in existing:
            await self._run(
                "create_collection",
                collection_name=relationship_collection,
                vectors_config={},
            )
            log.info(f"Created Qdrant collection: {relationship_collection}")

        for collection, field_names in (keyword_fields or {}).items():
            for field_name in field_names:
                await self._run(
                    "create_payload_index",
                    collection_name=collection,
                    field_name=field_name,
                    field_schema=PayloadSchemaType.KEYWORD,
                )

    async def insert_many(self, collection: str, objects: Sequence[NewObject]) -> List[ItemResult]:
        results: List[ItemResult] = []
        points: List[PointStruct] = []

        for obj in objects:
            if obj.vector is not None and len(obj.vector) != self.config.vector_size:
                results.append(ItemResult(
                    error=f"vector dimension {len(obj.vector)} != {self.config.vector_size}"
                ))
                continue
            handle = str(uuid.uuid4())
            vector = {VECTOR_NAME: list(obj.vector)} if obj.vector is not None else {}
            points.append(PointStruct(id=handle, vector=vector, payload=dict(obj.properties)))
            results.append(ItemResult(handle=handle))

        if points:
            await self._run("upsert", collection_name=collection, points=points, wait=True)
        return results

    async def fetch(
        self,
        collection: str,
        flt: Optional[Filter] = None,
        limit: Optional[int] = None,
    ) -> List[StoredObject]:
        found: List[StoredObject] = []
        offset = None
        qfilter = to_qdrant_filter(flt)

        while True:
            page_size = SCROLL_PAGE_SIZE if limit is None else min(SCROLL_PAGE_SIZE, limit - len(found))
            points, offset = await self._run(
                "scroll",
                collection_name=collection,
                scroll_filter=qfilter,
                limit=page_size,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            found.extend(StoredObject(handle=str(p.id), properties=dict(p.payload or {})) for p in points)
            if offset is None or (limit is not None and len(found) >= limit):
                break

        return found if limit is None else found[:limit]

    async def near_vector(
        self,
        collection: str,
        vector: Sequence[float],
        flt: Optional[Filter] = None,
        limit: int = 10,
    ) -> List[ScoredObject]:
        response = await self._run(
            "query_points",
            collection_name=collection,
            query=list(vector),
            using=VECTOR_NAME,
            query_filter=to_qdrant_filter(flt),
            limit=limit,
            with_payload=True,
        )
        return [
            ScoredObject(
                object=StoredObject(handle=str(p.id), properties=dict(p.payload or {})),
                score=certainty(p.score),
            )
            for p in response.points
        ]

    async def bm25(
        self,
        collection: str,
        query: str,
        fields: Sequence[str],
        flt: Optional[Filter] = None,
        limit: int = 10,
    ) -> List[ScoredObject]:
        candidates = await self.fetch(collection, flt)
        documents = [
            " ".join(str(obj.properties.get(f) or "") for f in fields)
            for obj in candidates
        ]
        raw = bm25_scores(query, documents)
        hits = [
            ScoredObject(object=obj, score=normalize_keyword_score(score))
            for obj, score in zip(candidates, raw)
            if score > 0
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]

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
        pool = limit * OVER_RETRIEVE_FACTOR
        vector_hits = await self.near_vector(collection, vector, flt, pool)
        keyword_hits = await self.bm25(collection, query, fields, flt, pool)

        by_handle: Dict[str, StoredObject] = {}
        for hit in vector_hits + keyword_hits:
            by_handle.setdefault(hit.object.handle, hit.object)

        fused = relative_score_fusion(
            {hit.object.handle: hit.score for hit in vector_hits},
            {hit.object.handle: hit.score for hit in keyword_hits},
            alpha,
        )
        return [ScoredObject(object=by_handle[h], score=s) for h, s in fused[:limit]]

    async def update(
        self,
        collection: str,
        handle: str,
        properties: Dict[str, Any],
        vector: Optional[Sequence[float]] = None,
    ) -> None:
        await self._run(
            "overwrite_payload",
            collection_name=collection,
            payload=dict(properties),
            points=[handle],
            wait=True,
        )
        if vector is not None:
            await self._run(
                "update_vectors",
                collection_name=collection,
                points=[PointVectors(id=handle, vector={VECTOR_NAME: list(vector)})],
                wait=True,
            )

    async def delete(self, collection: str, handle: str) -> None:
        await self._run(
            "delete",
            collection_name=collection,
            points_selector=PointIdsList(points=[handle]),
            wait=True,
        )

    async def group_by(
        self,
        collection: str,
        field_name: str,
        flt: Optional[Filter] = None,
    ) -> Dict[str, int]:
        response = await self._run(
            "facet",
            collection_name=collection,
            key=field_name,
            facet_filter=to_qdrant_filter(flt),
            limit=FACET_LIMIT,
            exact=True,
        )
        return {str(hit.value): hit.count for hit in response.hits if hit.value}

    async def count(self, collection: str, flt: Optional[Filter] = None) -> int:
        response = await self._run(
            "count",
            collection_name=collection,
            count_filter=to_qdrant_filter(flt),
            exact=True,
        )
        return response.count
