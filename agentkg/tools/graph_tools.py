"""
Knowledge Graph Tools
=====================

Function-calling tools over a KnowledgeGraph.

Available tools:
- AddEntityTool (graphrag_add_entity): Store one entity
- AddRelationshipTool (graphrag_add_relationship): Connect two entities
- SearchTool (graphrag_search): Local, global or hybrid search
- GetContextTool (graphrag_get_context): Neighbourhood of an entity
- ExtractTool (graphrag_extract): Extract (and optionally store) graph objects from text

Tenant: tools do not take a tenant argument. Calls run under the graph's
default tenant or the ambient ``tenant_scope`` of the calling task.

Example:
    >>> registry = ToolRegistry()
    >>> register_graph_tools(registry, graph, llm)
    >>> print(await registry.get("graphrag_search").run("Alice"))
"""

import uuid
from typing import Any, Dict, List, Optional

import structlog

from agentkg.config.settings import ExtractionOptions, SearchOptions
from agentkg.graph import codec
from agentkg.graph.store import KnowledgeGraph
from agentkg.graph.traversal import DEFAULT_TRAVERSAL_DEPTH, MAX_TRAVERSAL_DEPTH
from agentkg.models import Entity, Relationship, SearchMode, SearchResult
from agentkg.providers.base import LLMProvider
from agentkg.tools.base import BaseTool, ParameterType, ToolParameter, ToolResult
from agentkg.tools.registry import ToolRegistry

log = structlog.get_logger()

SEARCH_TYPES = ["local", "global", "hybrid"]
DEFAULT_SEARCH_LIMIT = 10


def entity_to_output(entity: Entity) -> Dict[str, Any]:
    """Compact entity view; empty description/properties are omitted."""
    out = {"id": entity.id, "name": entity.name, "type": entity.type}
    if entity.description:
        out["description"] = entity.description
    if entity.properties:
        out["properties"] = entity.properties
    return out


def relationship_to_output(rel: Relationship) -> Dict[str, Any]:
    out = {
        "id": rel.id,
        "source_id": rel.source_id,
        "target_id": rel.target_id,
        "type": rel.type,
    }
    if rel.description:
        out["description"] = rel.description
    if rel.strength:
        out["strength"] = rel.strength
    return out


def search_result_to_output(result: SearchResult) -> Dict[str, Any]:
    out: Dict[str, Any] = {"entity": entity_to_output(result.entity), "score": result.score}
    if result.community_id:
        out["community_id"] = result.community_id
    if result.context:
        out["context"] = [
            {k: v for k, v in entity_to_output(e).items() if k != "properties"}
            for e in result.context
        ]
    if result.path:
        out["relationships"] = [relationship_to_output(r) for r in result.path]
    return out


class AddEntityTool(BaseTool):
    """Store a single entity in the knowledge graph."""

    name = "graphrag_add_entity"
    description = (
        "Add a new entity (person, organization, project, concept, ...) to the "
        "knowledge graph. Use this to record facts worth remembering."
    )

    def __init__(self, graph: KnowledgeGraph):
        super().__init__()
        self.graph = graph

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter("name", ParameterType.STRING, "Name of the entity"),
            ToolParameter("type", ParameterType.STRING, "Entity type, e.g. 'Person', 'Organization', 'Project'"),
            ToolParameter("description", ParameterType.STRING, "Description of the entity"),
            ToolParameter(
                "properties", ParameterType.OBJECT, "Additional attributes as key/value pairs", required=False
            ),
            ToolParameter("id", ParameterType.STRING, "Entity id (generated when omitted)", required=False),
        ]

    async def execute(
        self,
        name: str,
        type: str,
        description: str,
        properties: Optional[Dict[str, Any]] = None,
        id: Optional[str] = None,
    ) -> ToolResult:
        entity = Entity(
            id=id or str(uuid.uuid4()),
            name=name,
            type=type,
            description=description,
            properties=dict(properties or {}),
        )
        result = await self.graph.store_entities([entity])
        if not result.ok:
            return ToolResult.fail(
                f"failed to add entity: {result.failed[0].message}", tool_name=self.name
            )

        return ToolResult.ok(
            {
                "success": True,
                "entity_id": entity.id,
                "message": f"Entity '{name}' of type '{type}' added successfully",
            },
            tool_name=self.name,
        )


class AddRelationshipTool(BaseTool):
    """Connect two existing entities."""

    name = "graphrag_add_relationship"
    description = (
        "Add a relationship between two entities in the knowledge graph, "
        "e.g. a person WORKS_ON a project or an organization OWNS a product."
    )

    def __init__(self, graph: KnowledgeGraph):
        super().__init__()
        self.graph = graph

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter("source_id", ParameterType.STRING, "Id of the source entity"),
            ToolParameter("target_id", ParameterType.STRING, "Id of the target entity"),
            ToolParameter("type", ParameterType.STRING, "Relationship type, e.g. 'WORKS_ON', 'MANAGES'"),
            ToolParameter("description", ParameterType.STRING, "Description of the relationship", required=False),
            ToolParameter(
                "strength", ParameterType.NUMBER, "Strength between 0.0 and 1.0", required=False, default=1.0
            ),
            ToolParameter(
                "properties", ParameterType.OBJECT, "Additional attributes as key/value pairs", required=False
            ),
            ToolParameter("id", ParameterType.STRING, "Relationship id (generated when omitted)", required=False),
        ]

    async def execute(
        self,
        source_id: str,
        target_id: str,
        type: str,
        description: str = "",
        strength: float = 1.0,
        properties: Optional[Dict[str, Any]] = None,
        id: Optional[str] = None,
    ) -> ToolResult:
        if strength == 0:
            strength = 1.0
        if not 0.0 <= strength <= 1.0:
            return ToolResult.fail("strength must be between 0.0 and 1.0", tool_name=self.name)

        rel_type = codec.normalize_relationship_type(type)
        rel = Relationship(
            id=id or str(uuid.uuid4()),
            source_id=source_id,
            target_id=target_id,
            type=rel_type,
            description=description or "",
            strength=float(strength),
            properties=dict(properties or {}),
        )
        result = await self.graph.store_relationships([rel])
        if not result.ok:
            return ToolResult.fail(
                f"failed to add relationship: {result.failed[0].message}", tool_name=self.name
            )

        return ToolResult.ok(
            {
                "success": True,
                "relationship_id": rel.id,
                "message": f"Relationship '{rel_type}' from '{source_id}' to '{target_id}' added successfully",
            },
            tool_name=self.name,
        )


class SearchTool(BaseTool):
    """
    Search the knowledge graph.

    search_type:
        local   ranked entities plus the graph context of the top hit
        global  per entity type, merged by score
        hybrid  vector + keyword ranking (default)

    Relationships are always included in the output. ``limit`` caps the
    result count for every search type.
    """

    name = "graphrag_search"
    description = (
        "Search the knowledge graph for entities and relationships matching a query. "
        "Supports local search (entity-focused with graph traversal) and global search "
        "(across entity types). Use this to find people, organizations, concepts and "
        "how they are related."
    )
    primary_parameter = "query"

    def __init__(self, graph: KnowledgeGraph):
        super().__init__()
        self.graph = graph

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter("query", ParameterType.STRING, "Search query"),
            ToolParameter(
                "search_type",
                ParameterType.STRING,
                "'local' (with graph context), 'global' (across entity types) or 'hybrid' (vector + keyword)",
                required=False,
                default="hybrid",
                enum=SEARCH_TYPES,
            ),
            ToolParameter(
                "limit", ParameterType.INTEGER, "Maximum number of results", required=False,
                default=DEFAULT_SEARCH_LIMIT,
            ),
            ToolParameter(
                "entity_types", ParameterType.ARRAY, "Only return these entity types, e.g. ['Person']",
                required=False, items=ParameterType.STRING,
            ),
            ToolParameter(
                "depth", ParameterType.INTEGER, "Traversal depth for local search (max 5)", required=False,
                default=DEFAULT_TRAVERSAL_DEPTH,
            ),
        ]

    async def execute(
        self,
        query: str,
        search_type: str = "hybrid",
        limit: int = DEFAULT_SEARCH_LIMIT,
        entity_types: Optional[List[str]] = None,
        depth: int = DEFAULT_TRAVERSAL_DEPTH,
    ) -> ToolResult:
        if not query.strip():
            return ToolResult.fail("query parameter is required", tool_name=self.name)
        if limit <= 0:
            limit = DEFAULT_SEARCH_LIMIT
        if depth <= 0:
            depth = DEFAULT_TRAVERSAL_DEPTH

        options = SearchOptions(include_relationships=True)
        if entity_types:
            options = options.with_entity_types(*entity_types)

        log.debug(f"graphrag_search: {search_type}", query=query, limit=limit)

        if search_type == "local":
            results = await self.graph.local_search(
                query, None, depth, options.with_max_depth(depth)
            )
        elif search_type == "global":
            results = await self.graph.global_search(query, 1, options)
        else:
            results = await self.graph.search(query, limit, options.with_mode(SearchMode.HYBRID))
        results = results[:limit]

        return ToolResult.ok(
            [search_result_to_output(r) for r in results],
            tool_name=self.name,
            count=len(results),
        )


class GetContextTool(BaseTool):
    """Neighbourhood of one entity."""

    name = "graphrag_get_context"
    description = (
        "Get the graph context around an entity: connected entities and the "
        "relationships between them, up to a given depth."
    )
    primary_parameter = "entity_id"

    def __init__(self, graph: KnowledgeGraph):
        super().__init__()
        self.graph = graph

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter("entity_id", ParameterType.STRING, "Id of the entity to explore"),
            ToolParameter(
                "depth", ParameterType.INTEGER, "Traversal depth (1-5)", required=False,
                default=DEFAULT_TRAVERSAL_DEPTH,
            ),
            ToolParameter(
                "relationship_types", ParameterType.ARRAY, "Only follow these relationship types",
                required=False, items=ParameterType.STRING,
            ),
        ]

    async def execute(
        self,
        entity_id: str,
        depth: int = DEFAULT_TRAVERSAL_DEPTH,
        relationship_types: Optional[List[str]] = None,
    ) -> ToolResult:
        if depth <= 0:
            depth = DEFAULT_TRAVERSAL_DEPTH
        depth = min(depth, MAX_TRAVERSAL_DEPTH)

        options = SearchOptions()
        if relationship_types:
            options = options.with_relationship_types(*relationship_types)

        ctx = await self.graph.traverse_from(entity_id, depth, options)
        central = ctx.central_entity
        entities = [entity_to_output(e) for e in ctx.entities if e.id != central.id]
        relationships = [relationship_to_output(r) for r in ctx.relationships]

        return ToolResult.ok(
            {
                "central_entity": entity_to_output(central),
                "depth": ctx.depth,
                "entities": entities,
                "relationships": relationships,
                "summary": (
                    f"Entity '{central.name}' ({central.type}) has {len(entities)} connected "
                    f"entities and {len(relationships)} relationships within depth {ctx.depth}."
                ),
            },
            tool_name=self.name,
        )


class ExtractTool(BaseTool):
    """LLM extraction, optionally persisted."""

    name = "graphrag_extract"
    description = (
        "Extract entities and relationships from text with the language model. "
        "Set store_results to add them to the knowledge graph."
    )
    primary_parameter = "text"

    def __init__(self, graph: KnowledgeGraph, llm: Optional[LLMProvider] = None):
        super().__init__()
        self.graph = graph
        self.llm = llm

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter("text", ParameterType.STRING, "Text to analyze"),
            ToolParameter(
                "store_results", ParameterType.BOOLEAN, "Store the extracted objects in the graph",
                required=False, default=False,
            ),
            ToolParameter(
                "schema_guided", ParameterType.BOOLEAN, "Guide extraction with the graph schema",
                required=False, default=True,
            ),
            ToolParameter(
                "entity_types", ParameterType.ARRAY, "Limit extraction to these entity types",
                required=False, items=ParameterType.STRING,
            ),
            ToolParameter(
                "relationship_types", ParameterType.ARRAY, "Limit extraction to these relationship types",
                required=False, items=ParameterType.STRING,
            ),
        ]

    async def execute(
        self,
        text: str,
        store_results: bool = False,
        schema_guided: bool = True,
        entity_types: Optional[List[str]] = None,
        relationship_types: Optional[List[str]] = None,
    ) -> ToolResult:
        if not text.strip():
            return ToolResult.fail("text is required", tool_name=self.name)

        options = ExtractionOptions(schema_guided=schema_guided)
        if entity_types:
            options = options.with_entity_types(*entity_types)
        if relationship_types:
            options = options.with_relationship_types(*relationship_types)

        result = await self.graph.extract_from_text(text, self.llm, options)

        stored = False
        if store_results and result.entities:
            await self.graph.store_entities(result.entities)
            if result.relationships:
                await self.graph.store_relationships(result.relationships)
            stored = True

        suffix = " and stored in the knowledge graph" if stored else ""
        return ToolResult.ok(
            {
                "entities": [entity_to_output(e) for e in result.entities],
                "relationships": [relationship_to_output(r) for r in result.relationships],
                "confidence": result.confidence,
                "stored": stored,
                "summary": (
                    f"Extracted {len(result.entities)} entities and {len(result.relationships)} "
                    f"relationships with {result.confidence * 100:.0f}% confidence{suffix}."
                ),
            },
            tool_name=self.name,
        )


def create_graph_tools(graph: KnowledgeGraph, llm: Optional[LLMProvider] = None) -> List[BaseTool]:
    """All graph tools bound to one graph (the extract tool falls back to graph.llm)."""
    return [
        AddEntityTool(graph),
        AddRelationshipTool(graph),
        SearchTool(graph),
        GetContextTool(graph),
        ExtractTool(graph, llm),
    ]


def register_graph_tools(
    registry: ToolRegistry,
    graph: KnowledgeGraph,
    llm: Optional[LLMProvider] = None,
) -> List[str]:
    """Register the graph tools; write tools under "write", the rest under "read"."""
    names = []
    for tool in create_graph_tools(graph, llm):
        category = "write" if tool.name in (AddEntityTool.name, AddRelationshipTool.name) else "read"
        registry.register(tool, category=category)
        names.append(tool.name)
    return names
