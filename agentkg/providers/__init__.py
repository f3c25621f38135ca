"""
Embedding and LLM providers.
"""

from agentkg.providers.base import EmbeddingProvider, LLMProvider
from agentkg.providers.openai_compat import (
    OpenAICompatibleEmbedder,
    OpenAICompatibleLLM,
    ProviderConfig,
)
from agentkg.providers.similarity import calculate_similarity, cosine_similarity

__all__ = [
    "EmbeddingProvider",
    "LLMProvider",
    "OpenAICompatibleEmbedder",
    "OpenAICompatibleLLM",
    "ProviderConfig",
    "calculate_similarity",
    "cosine_similarity",
]
