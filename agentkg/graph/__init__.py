"""
Graph engines and the KnowledgeGraph facade.
"""

from agentkg.graph.extraction import ExtractionEngine
from agentkg.graph.repository import GraphRepository
from agentkg.graph.schema import SchemaManager
from agentkg.graph.search import SearchEngine
from agentkg.graph.store import KnowledgeGraph
from agentkg.graph.traversal import TraversalEngine

__all__ = [
    "KnowledgeGraph",
    "GraphRepository",
    "SearchEngine",
    "TraversalEngine",
    "ExtractionEngine",
    "SchemaManager",
]
