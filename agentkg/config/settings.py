"""
Knowledge Graph Configuration
=============================

Connection settings for the graph store and the per-call option bags.

Usage:
    from agentkg.config import GraphConfig, SearchOptions

    # Default (env vars or built-in defaults)
    config = GraphConfig()

    # Explicit override
    config = GraphConfig(backend="qdrant", host="qdrant.internal", class_prefix="Memory")

    # From YAML
    config = GraphConfig.from_yaml("graph.yaml")

    opts = SearchOptions().with_mode(SearchMode.KEYWORD).with_entity_types("Person")

Environment Variables:
    AGENTKG_BACKEND: "memory" or "qdrant" (default: memory)
    AGENTKG_HOST: Qdrant host (default: localhost)
    AGENTKG_PORT: Qdrant port (default: 6333)
    AGENTKG_API_KEY: Qdrant API key (default: empty)
    AGENTKG_CLASS_PREFIX: Collection name prefix (default: Graph)
    AGENTKG_TENANT: Default tenant for the store (default: empty = unscoped)
    AGENTKG_VECTOR_SIZE: Embedding dimension (default: 1536)
    AGENTKG_TIMEOUT_MS: Backend call timeout in ms (default: 5000)
    AGENTKG_SCHEMA_CACHE_TTL: Discovered schema cache TTL in seconds (default: 0 = off)
"""

import os
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from agentkg.models import SearchMode

SUPPORTED_BACKENDS = ("memory", "qdrant")
DEFAULT_BATCH_SIZE = 100

_PREFIX_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


def _get_env_str(key: str, default: str) -> str:
    """Read an environment variable as string."""
    return os.environ.get(key, default)


def _get_env_int(key: str, default: int) -> int:
    """Read an environment variable as int."""
    return int(os.environ.get(key, default))


def _get_env_float(key: str, default: float) -> float:
    """Read an environment variable as float."""
    return float(os.environ.get(key, default))


@dataclass
class GraphConfig:
    """
    Graph store configuration.

    Every field can be overridden from the environment.

    Attributes:
        backend: Object store implementation ("memory" or "qdrant")
        host: Qdrant host
        port: Qdrant HTTP port
        api_key: Qdrant API key (optional)
        class_prefix: Prefix for the two collections (<prefix>Entity, <prefix>Relationship)
        tenant: Default tenant applied when a call has neither explicit nor ambient tenant
        vector_size: Embedding dimension used when creating collections
        timeout_ms: Upper bound for a single backend call
        schema_cache_ttl: Seconds a discovered schema is reused (0 disables caching)
    """
    backend: str = field(default_factory=lambda: _get_env_str("AGENTKG_BACKEND", "memory"))
    host: str = field(default_factory=lambda: _get_env_str("AGENTKG_HOST", "localhost"))
    port: int = field(default_factory=lambda: _get_env_int("AGENTKG_PORT", 6333))
    api_key: Optional[str] = field(default_factory=lambda: _get_env_str("AGENTKG_API_KEY", "") or None)
    class_prefix: str = field(default_factory=lambda: _get_env_str("AGENTKG_CLASS_PREFIX", "Graph"))
    tenant: str = field(default_factory=lambda: _get_env_str("AGENTKG_TENANT", ""))
    vector_size: int = field(default_factory=lambda: _get_env_int("AGENTKG_VECTOR_SIZE", 1536))
    timeout_ms: int = field(default_factory=lambda: _get_env_int("AGENTKG_TIMEOUT_MS", 5000))
    schema_cache_ttl: float = field(default_factory=lambda: _get_env_float("AGENTKG_SCHEMA_CACHE_TTL", 0))

    def __post_init__(self):
        """Validate configuration values."""
        if self.backend not in SUPPORTED_BACKENDS:
            raise ValueError(f"backend must be one of {SUPPORTED_BACKENDS}, got {self.backend!r}")
        if not _PREFIX_PATTERN.match(self.class_prefix or ""):
            raise ValueError(f"class_prefix must be an identifier, got {self.class_prefix!r}")
        if self.port <= 0:
            raise ValueError(f"port must be > 0, got {self.port}")
        if self.vector_size <= 0:
            raise ValueError(f"vector_size must be > 0, got {self.vector_size}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if self.schema_cache_ttl < 0:
            raise ValueError(f"schema_cache_ttl must be >= 0, got {self.schema_cache_ttl}")

    @property
    def entity_collection(self) -> str:
        return f"{self.class_prefix}Entity"

    @property
    def relationship_collection(self) -> str:
        return f"{self.class_prefix}Relationship"

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphConfig":
        """
        Build a config from a mapping. Missing keys fall back to env/defaults.

        Raises:
            ValueError: On unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown graph config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "GraphConfig":
        """
        Load a config from a YAML file.

        The file may hold the fields at top level or under a ``graph:`` key.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if "graph" in data and isinstance(data["graph"], dict):
            data = data["graph"]
        return cls.from_dict(data)


@dataclass(frozen=True)
class StoreOptions:
    """
    Options for write and lookup calls.

    Attributes:
        batch_size: Objects per backend insert (<= 0 means 100)
        generate_embeddings: Compute embeddings when an embedder is configured
        tenant: Explicit tenant, overrides ambient and store default
    """
    batch_size: int = DEFAULT_BATCH_SIZE
    generate_embeddings: bool = True
    tenant: Optional[str] = None

    @property
    def effective_batch_size(self) -> int:
        return self.batch_size if self.batch_size > 0 else DEFAULT_BATCH_SIZE

    def with_tenant(self, tenant: str) -> "StoreOptions":
        return replace(self, tenant=tenant)

    def with_batch_size(self, batch_size: int) -> "StoreOptions":
        return replace(self, batch_size=batch_size)

    def with_embeddings(self, enabled: bool) -> "StoreOptions":
        return replace(self, generate_embeddings=enabled)


@dataclass(frozen=True)
class SearchOptions:
    """
    Options for search, traversal and relationship lookup.

    Attributes:
        mode: Retrieval strategy (default HYBRID)
        min_score: Results below this score are dropped
        max_depth: Path search bound; None means the engine default
                   (5 hops for shortest path)
        include_relationships: Attach relationships to local search results
        entity_types: Allow-list of entity types (empty = all)
        relationship_types: Allow-list of relationship types (empty = all)
        tenant: Explicit tenant
    """
    mode: SearchMode = SearchMode.HYBRID
    min_score: float = 0.0
    max_depth: Optional[int] = None
    include_relationships: bool = False
    entity_types: Tuple[str, ...] = ()
    relationship_types: Tuple[str, ...] = ()
    tenant: Optional[str] = None

    def with_mode(self, mode: SearchMode) -> "SearchOptions":
        return replace(self, mode=SearchMode(mode))

    def with_min_score(self, min_score: float) -> "SearchOptions":
        return replace(self, min_score=min_score)

    def with_max_depth(self, max_depth: int) -> "SearchOptions":
        return replace(self, max_depth=max_depth)

    def with_relationships(self, include: bool = True) -> "SearchOptions":
        return replace(self, include_relationships=include)

    def with_entity_types(self, *types: str) -> "SearchOptions":
        return replace(self, entity_types=tuple(types))

    def with_relationship_types(self, *types: str) -> "SearchOptions":
        return replace(self, relationship_types=tuple(types))

    def with_tenant(self, tenant: str) -> "SearchOptions":
        return replace(self, tenant=tenant)

    def store_options(self) -> StoreOptions:
        """Lookup options carrying the same tenant."""
        return StoreOptions(tenant=self.tenant)


@dataclass(frozen=True)
class ExtractionOptions:
    """
    Options for LLM extraction.

    Attributes:
        schema_guided: Prompt with the applied schema's types and constraints
        min_confidence: Entities are discarded when the response confidence is lower
        max_entities: Cap on returned entities, applied after deduplication
        dedup_threshold: Cosine similarity at or above which two entities merge (0 disables)
        entity_types: Allow-list for extracted entity types
        relationship_types: Allow-list for extracted relationship types
    """
    schema_guided: bool = False
    min_confidence: float = 0.5
    max_entities: int = 50
    dedup_threshold: float = 0.92
    entity_types: Tuple[str, ...] = ()
    relationship_types: Tuple[str, ...] = ()

    def __post_init__(self):
        if not 0 <= self.min_confidence <= 1:
            raise ValueError(f"min_confidence must be in [0, 1], got {self.min_confidence}")
        if not 0 <= self.dedup_threshold <= 1:
            raise ValueError(f"dedup_threshold must be in [0, 1], got {self.dedup_threshold}")

    def with_schema_guided(self, enabled: bool = True) -> "ExtractionOptions":
        return replace(self, schema_guided=enabled)

    def with_min_confidence(self, value: float) -> "ExtractionOptions":
        return replace(self, min_confidence=value)

    def with_max_entities(self, value: int) -> "ExtractionOptions":
        return replace(self, max_entities=value)

    def with_dedup_threshold(self, value: float) -> "ExtractionOptions":
        return replace(self, dedup_threshold=value)

    def with_entity_types(self, *types: str) -> "ExtractionOptions":
        return replace(self, entity_types=tuple(types))

    def with_relationship_types(self, *types: str) -> "ExtractionOptions":
        return replace(self, relationship_types=tuple(types))
