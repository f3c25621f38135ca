"""
Provider Interfaces
===================

Contracts for the two external collaborators the graph depends on:

- EmbeddingProvider: text -> vector
- LLMProvider: prompt -> completion text

Both are optional for the store. Operations that need a missing one raise
NoEmbedderError / NoLLMError, or degrade where documented (hybrid search
falls back to keyword search).
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

from agentkg.providers.similarity import calculate_similarity


class EmbeddingProvider(ABC):
    """Turns text into embedding vectors."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        pass

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed several texts. Default implementation calls embed() per text."""
        return [await self.embed(text) for text in texts]

    def calculate_similarity(
        self,
        v1: Sequence[float],
        v2: Sequence[float],
        metric: str = "cosine",
    ) -> float:
        return calculate_similarity(v1, v2, metric)


class LLMProvider(ABC):
    """Single-turn text generation."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        Generate a completion.

        Raises:
            Exception: Any transport or API failure
        """
        pass
