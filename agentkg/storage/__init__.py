"""
Storage layer: object store backends for the knowledge graph.
"""

from agentkg.storage.backend import (
    And,
    Eq,
    InMemoryObjectStore,
    ObjectStore,
    Or,
    create_object_store,
)

__all__ = [
    "ObjectStore",
    "InMemoryObjectStore",
    "create_object_store",
    "Eq",
    "And",
    "Or",
]
