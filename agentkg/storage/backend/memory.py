"""
In-Memory Object Store
======================

Process-local ObjectStore used for tests and development.

Ranking follows the same rules as the Qdrant adapter (certainty for vector
search, BM25 + ``s / (s + 1)`` for keyword search, relative-score fusion for
hybrid), so engine tests exercise realistic scores without a server.
"""

import asyncio
import copy
import uuid
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from agentkg.errors import BackendError
from agentkg.providers.similarity import certainty, cosine_similarity
from agentkg.storage.backend.base import (
    Filter,
    ItemResult,
    NewObject,
    ObjectStore,
    ScoredObject,
    StoredObject,
    matches,
)
from agentkg.storage.backend.scoring import (
    bm25_scores,
    normalize_keyword_score,
    relative_score_fusion,
)

log = structlog.get_logger()

# Candidates taken from each side before hybrid fusion
OVER_RETRIEVE_FACTOR = 3


class InMemoryObjectStore(ObjectStore):
    """
    Dict-backed ObjectStore.

    Example:
        store = InMemoryObjectStore(vector_size=3)
        await store.connect()
        await store.ensure_collections("GraphEntity", "GraphRelationship")
    """

    def __init__(self, vector_size: Optional[int] = None):
        self.vector_size = vector_size
        self._collections: Dict[str, Dict[str, StoredObject]] = {}
        self._connected = False

    async def connect(self) -> None:
        self._connected = True
        log.debug("InMemoryObjectStore connected")

    async def close(self) -> None:
        self._connected = False

    async def ensure_collections(
        self,
        entity_collection: str,
        relationship_collection: str,
        keyword_fields: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        for name in (entity_collection, relationship_collection):
            if name not in self._collections:
                self._collections[name] = {}
                log.info(f"Created collection: {name}")

    def _collection(self, name: str) -> Dict[str, StoredObject]:
        try:
            return self._collections[name]
        except KeyError:
            raise BackendError(f"Collection not found: {name}") from None

    async def _round_trip(self) -> None:
        # Suspension point, so cancellation behaves like a remote call
        await asyncio.sleep(0)

    def _filtered(self, collection: str, flt: Optional[Filter]) -> List[StoredObject]:
        return [obj for obj in self._collection(collection).values() if matches(flt, obj.properties)]

    async def insert_many(self, collection: str, objects: Sequence[NewObject]) -> List[ItemResult]:
        await self._round_trip()
        target = self._collection(collection)
        results = []
        for obj in objects:
            if obj.vector is not None and self.vector_size and len(obj.vector) != self.vector_size:
                results.append(ItemResult(
                    error=f"vector dimension {len(obj.vector)} != {self.vector_size}"
                ))
                continue
            handle = str(uuid.uuid4())
            target[handle] = StoredObject(
                handle=handle,
                properties=copy.deepcopy(obj.properties),
                vector=list(obj.vector) if obj.vector is not None else None,
            )
            results.append(ItemResult(handle=handle))
        return results

    async def fetch(
        self,
        collection: str,
        flt: Optional[Filter] = None,
        limit: Optional[int] = None,
    ) -> List[StoredObject]:
        await self._round_trip()
        found = self._filtered(collection, flt)
        if limit is not None:
            found = found[:limit]
        return [copy.deepcopy(obj) for obj in found]

    def _vector_scores(self, candidates: List[StoredObject], vector: Sequence[float]) -> Dict[str, float]:
        return {
            obj.handle: certainty(cosine_similarity(obj.vector, vector))
            for obj in candidates
            if obj.vector is not None and len(obj.vector) == len(vector)
        }

    def _keyword_scores(
        self,
        candidates: List[StoredObject],
        query: str,
        fields: Sequence[str],
    ) -> Dict[str, float]:
        documents = [
            " ".join(str(obj.properties.get(f) or "") for f in fields)
            for obj in candidates
        ]
        raw = bm25_scores(query, documents)
        return {
            obj.handle: normalize_keyword_score(score)
            for obj, score in zip(candidates, raw)
            if score > 0
        }

    def _ranked(self, collection: str, scores: Dict[str, float], limit: int) -> List[ScoredObject]:
        objects = self._collection(collection)
        ordered = sorted(scores.items(), key=lambda item: item[1], reverse=True)[:limit]
        return [ScoredObject(object=copy.deepcopy(objects[h]), score=s) for h, s in ordered]

    async def near_vector(
        self,
        collection: str,
        vector: Sequence[float],
        flt: Optional[Filter] = None,
        limit: int = 10,
    ) -> List[ScoredObject]:
        await self._round_trip()
        scores = self._vector_scores(self._filtered(collection, flt), vector)
        return self._ranked(collection, scores, limit)

    async def bm25(
        self,
        collection: str,
        query: str,
        fields: Sequence[str],
        flt: Optional[Filter] = None,
        limit: int = 10,
    ) -> List[ScoredObject]:
        await self._round_trip()
        scores = self._keyword_scores(self._filtered(collection, flt), query, fields)
        return self._ranked(collection, scores, limit)

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
        await self._round_trip()
        candidates = self._filtered(collection, flt)
        pool = limit * OVER_RETRIEVE_FACTOR

        vec = dict(sorted(
            self._vector_scores(candidates, vector).items(), key=lambda item: item[1], reverse=True
        )[:pool])
        kw = dict(sorted(
            self._keyword_scores(candidates, query, fields).items(), key=lambda item: item[1], reverse=True
        )[:pool])

        fused = dict(relative_score_fusion(vec, kw, alpha))
        return self._ranked(collection, fused, limit)

    async def update(
        self,
        collection: str,
        handle: str,
        properties: Dict[str, Any],
        vector: Optional[Sequence[float]] = None,
    ) -> None:
        await self._round_trip()
        target = self._collection(collection)
        if handle not in target:
            raise BackendError(f"Object {handle} not found in {collection}")
        current = target[handle]
        current.properties = copy.deepcopy(properties)
        if vector is not None:
            current.vector = list(vector)

    async def delete(self, collection: str, handle: str) -> None:
        await self._round_trip()
        target = self._collection(collection)
        if handle not in target:
            raise BackendError(f"Object {handle} not found in {collection}")
        del target[handle]

    async def group_by(
        self,
        collection: str,
        field_name: str,
        flt: Optional[Filter] = None,
    ) -> Dict[str, int]:
        await self._round_trip()
        counts = Counter(
            obj.properties.get(field_name)
            for obj in self._filtered(collection, flt)
            if obj.properties.get(field_name)
        )
        return dict(counts)

    async def count(self, collection: str, flt: Optional[Filter] = None) -> int:
        await self._round_trip()
        return len(self._filtered(collection, flt))
