"""
Object store backends.

    from agentkg.storage.backend import create_object_store

    store = create_object_store(GraphConfig(backend="qdrant"))
"""

from typing import Optional

from agentkg.config.settings import GraphConfig
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
    all_of,
    any_of,
    matches,
)
from agentkg.storage.backend.memory import InMemoryObjectStore


def create_object_store(config: Optional[GraphConfig] = None) -> ObjectStore:
    """Instantiate the backend named by ``config.backend``."""
    config = config or GraphConfig()
    if config.backend == "qdrant":
        from agentkg.storage.backend.qdrant import QdrantObjectStore
        return QdrantObjectStore(config)
    return InMemoryObjectStore(vector_size=config.vector_size)


__all__ = [
    "ObjectStore",
    "InMemoryObjectStore",
    "create_object_store",
    "Filter",
    "Eq",
    "And",
    "Or",
    "all_of",
    "any_of",
    "matches",
    "NewObject",
    "StoredObject",
    "ScoredObject",
    "ItemResult",
]
