"""
agentkg Test Configuration
==========================

Shared fakes and fixtures. Everything runs on the in-memory backend; no
external services are needed.
"""

import re
import zlib
from typing import Dict, List, Optional, Sequence

import pytest
import pytest_asyncio

from agentkg.config.settings import GraphConfig
from agentkg.graph.store import KnowledgeGraph
from agentkg.models import Entity, Relationship
from agentkg.providers.base import EmbeddingProvider, LLMProvider
from agentkg.storage.backend.memory import InMemoryObjectStore

EMBEDDING_DIM = 16


class FakeEmbedder(EmbeddingProvider):
    """
    Deterministic bag-of-words embedder.

    Each token is hashed into one of ``dim`` buckets. ``vectors`` pins exact
    vectors for given texts.
    """

    def __init__(
        self,
        dim: int = EMBEDDING_DIM,
        vectors: Optional[Dict[str, List[float]]] = None,
        fail: bool = False,
    ):
        self.dim = dim
        self.vectors = vectors or {}
        self.fail = fail
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding service unavailable")
        if text in self.vectors:
            return list(self.vectors[text])
        vector = [0.0] * self.dim
        for token in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(token.encode("utf-8")) % self.dim] += 1.0
        return vector


class FakeLLM(LLMProvider):
    """Returns canned responses in order (the last one repeats) and records prompts."""

    def __init__(self, responses: Sequence[str] = ("{}",), error: Optional[Exception] = None):
        self.responses = list(responses)
        self.error = error
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        index = min(len(self.prompts) - 1, len(self.responses) - 1)
        return self.responses[index]


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def graph_config():
    return GraphConfig(backend="memory", class_prefix="Test", vector_size=EMBEDDING_DIM, tenant="")


@pytest.fixture
def backend():
    return InMemoryObjectStore(vector_size=EMBEDDING_DIM)


@pytest_asyncio.fixture
async def graph(backend, graph_config, embedder):
    """Connected graph with an embedder and no LLM."""
    kg = KnowledgeGraph(backend=backend, config=graph_config, embedder=embedder)
    await kg.connect()
    yield kg
    await kg.close()


@pytest_asyncio.fixture
async def keyword_graph(backend, graph_config):
    """Connected graph without embedder (keyword ranking only)."""
    kg = KnowledgeGraph(backend=backend, config=graph_config)
    await kg.connect()
    yield kg
    await kg.close()


def make_entity(entity_id: str, name: Optional[str] = None, entity_type: str = "Person", **kwargs) -> Entity:
    return Entity(id=entity_id, name=name or entity_id, type=entity_type, **kwargs)


def make_relationship(rel_id: str, source_id: str, target_id: str, rel_type: str = "RELATED_TO", **kwargs) -> Relationship:
    return Relationship(id=rel_id, source_id=source_id, target_id=target_id, type=rel_type, **kwargs)


@pytest_asyncio.fixture
async def chain_graph(keyword_graph):
    """A -> B -> C -> D chain."""
    await keyword_graph.store_entities([
        make_entity("A", "Alpha"),
        make_entity("B", "Bravo"),
        make_entity("C", "Charlie"),
        make_entity("D", "Delta"),
    ])
    await keyword_graph.store_relationships([
        make_relationship("ab", "A", "B", "KNOWS"),
        make_relationship("bc", "B", "C", "KNOWS"),
        make_relationship("cd", "C", "D", "KNOWS"),
    ])
    return keyword_graph
