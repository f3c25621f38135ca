"""
Tests for the knowledge graph agent tools.
"""

import json

import pytest
import pytest_asyncio

from agentkg.tools import (
    AddEntityTool,
    AddRelationshipTool,
    ExtractTool,
    GetContextTool,
    SearchTool,
    ToolError,
    ToolRegistry,
    register_graph_tools,
)

from conftest import FakeLLM, make_entity, make_relationship


@pytest_asyncio.fixture
async def team(keyword_graph):
    """Small team graph; keyword ranking keeps search order deterministic."""
    graph = keyword_graph
    await graph.store_entities([
        make_entity("alice", "Alice", description="Software engineer"),
        make_entity("alpha", "Project Alpha", "Project", description="Graph migration"),
        make_entity("bob", "Bob", description="Product manager"),
    ])
    await graph.store_relationships([
        make_relationship("r1", "alice", "alpha", "WORKS_ON", strength=0.8),
        make_relationship("r2", "bob", "alpha", "MANAGES"),
    ])
    return graph


class TestAddEntityTool:

    @pytest.mark.asyncio
    async def test_add(self, graph):
        """The entity is stored and its id returned."""
        tool = AddEntityTool(graph)

        result = await tool(
            name="Alice", type="Person", description="Engineer", properties={"team": "core"}, id="alice"
        )

        assert result.success
        assert result.data == {
            "success": True,
            "entity_id": "alice",
            "message": "Entity 'Alice' of type 'Person' added successfully",
        }
        stored = await graph.get_entity("alice")
        assert stored.properties == {"team": "core"}

    @pytest.mark.asyncio
    async def test_generated_id(self, graph):
        """Without id a UUID is generated."""
        result = await AddEntityTool(graph)(name="Bob", type="Person", description="Manager")

        entity_id = result.data["entity_id"]
        assert len(entity_id) == 36
        assert (await graph.get_entity(entity_id)).name == "Bob"

    @pytest.mark.asyncio
    async def test_missing_description(self, graph):
        """description is required."""
        result = await AddEntityTool(graph)(name="Bob", type="Person")

        assert not result.success
        assert result.error == "Missing required parameter: description"

    @pytest.mark.asyncio
    async def test_run_requires_json(self, graph):
        """Without a primary parameter plain text is rejected."""
        with pytest.raises(ToolError, match="expects a JSON object"):
            await AddEntityTool(graph).run("Alice")


class TestAddRelationshipTool:

    @pytest.mark.asyncio
    async def test_add_normalizes_type(self, graph):
        """The type is normalized and reported."""
        result = await AddRelationshipTool(graph)(
            source_id="alice", target_id="alpha", type="works on", id="r1"
        )

        assert result.success
        assert result.data["relationship_id"] == "r1"
        assert result.data["message"] == "Relationship 'WORKS_ON' from 'alice' to 'alpha' added successfully"
        rel = await graph.get_relationship("r1")
        assert rel.type == "WORKS_ON"
        assert rel.strength == 1.0

    @pytest.mark.asyncio
    async def test_zero_strength_means_default(self, graph):
        """strength 0 is stored as 1.0."""
        await AddRelationshipTool(graph)(source_id="a", target_id="b", type="KNOWS", strength=0, id="r1")
        assert (await graph.get_relationship("r1")).strength == 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strength", [1.5, -0.2])
    async def test_strength_out_of_range(self, graph, strength):
        """Out-of-range strength is rejected."""
        result = await AddRelationshipTool(graph)(
            source_id="a", target_id="b", type="KNOWS", strength=strength
        )

        assert not result.success
        assert result.error == "strength must be between 0.0 and 1.0"

    @pytest.mark.asyncio
    async def test_strength_type_checked(self, graph):
        """Non-numeric strength fails validation."""
        result = await AddRelationshipTool(graph)(
            source_id="a", target_id="b", type="KNOWS", strength="high"
        )
        assert result.error == "Parameter strength must be of type number"


class TestSearchTool:

    @pytest.mark.asyncio
    async def test_hybrid_default(self, team):
        """Default search is hybrid and reports the count."""
        result = await SearchTool(team)(query="Software engineer")

        assert result.success
        assert result.metadata["count"] == len(result.data)
        assert result.data[0]["entity"]["id"] == "alice"
        assert result.data[0]["entity"]["description"] == "Software engineer"

    @pytest.mark.asyncio
    async def test_local_includes_relationships(self, team):
        """Local search returns context and relationships of the top hit."""
        result = await SearchTool(team)(query="Alice", search_type="local", depth=1)

        top = result.data[0]
        assert top["entity"]["id"] == "alice"
        assert {e["id"] for e in top["context"]} == {"alice", "alpha"}
        assert {r["id"] for r in top["relationships"]} >= {"r1"}

    @pytest.mark.asyncio
    async def test_global_tags_communities(self, team):
        """Global search tags results with their entity type."""
        result = await SearchTool(team)(query="Project Alpha", search_type="global")

        assert result.data
        assert all(item["community_id"] == item["entity"]["type"] for item in result.data)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("search_type", ["local", "global", "hybrid"])
    async def test_limit_applies_to_every_search_type(self, team, search_type):
        """limit caps the results of local and global search too."""
        unbounded = await SearchTool(team)(query="Alice Bob", search_type=search_type, limit=10)
        assert len(unbounded.data) >= 2

        result = await SearchTool(team)(query="Alice Bob", search_type=search_type, limit=1)

        assert len(result.data) == 1
        assert result.metadata["count"] == 1

    @pytest.mark.asyncio
    async def test_entity_types(self, team):
        """entity_types restricts results."""
        result = await SearchTool(team)(query="Alpha Alice", entity_types=["Project"])

        assert {item["entity"]["type"] for item in result.data} == {"Project"}

    @pytest.mark.asyncio
    async def test_invalid_search_type(self, team):
        """search_type must be one of the supported values."""
        result = await SearchTool(team)(query="Alice", search_type="fuzzy")

        assert not result.success
        assert "must be one of" in result.error

    @pytest.mark.asyncio
    async def test_blank_query(self, team):
        """A blank query fails."""
        result = await SearchTool(team)(query="   ")
        assert result.error == "query parameter is required"

    @pytest.mark.asyncio
    async def test_run_plain_text(self, team):
        """Plain-text input goes to the query parameter; output is JSON."""
        output = await SearchTool(team).run("Software engineer")

        data = json.loads(output)
        assert data[0]["entity"]["id"] == "alice"


class TestGetContextTool:

    @pytest.mark.asyncio
    async def test_context(self, team):
        """Central entity, neighbours and a summary."""
        result = await GetContextTool(team)(entity_id="alpha", depth=1)

        data = result.data
        assert data["central_entity"]["id"] == "alpha"
        assert {e["id"] for e in data["entities"]} == {"alice", "bob"}
        assert {r["id"] for r in data["relationships"]} == {"r1", "r2"}
        assert data["summary"] == (
            "Entity 'Project Alpha' (Project) has 2 connected entities and 2 relationships within depth 1."
        )
        r1 = next(r for r in data["relationships"] if r["id"] == "r1")
        assert r1["strength"] == 0.8

    @pytest.mark.asyncio
    async def test_depth_clamped(self, team):
        """Depth above 5 is clamped, <= 0 uses the default."""
        assert (await GetContextTool(team)(entity_id="alpha", depth=50)).data["depth"] == 5
        assert (await GetContextTool(team)(entity_id="alpha", depth=0)).data["depth"] == 2

    @pytest.mark.asyncio
    async def test_relationship_type_filter(self, team):
        """Only the listed relationship types are followed."""
        result = await GetContextTool(team)(entity_id="alpha", depth=1, relationship_types=["MANAGES"])

        assert [e["id"] for e in result.data["entities"]] == ["bob"]

    @pytest.mark.asyncio
    async def test_missing_entity(self, team):
        """Unknown entity gives a failed result; run() raises ToolError."""
        result = await GetContextTool(team)(entity_id="ghost")
        assert not result.success

        with pytest.raises(ToolError):
            await GetContextTool(team).run("ghost")


EXTRACTION = json.dumps({
    "entities": [
        {"name": "Carol", "type": "Person", "description": "Designer"},
        {"name": "Project Beta", "type": "Project", "description": "Redesign"},
    ],
    "relationships": [{"source": "Carol", "target": "Project Beta", "type": "works on"}],
    "confidence": 0.85,
})


class TestExtractTool:

    @pytest.mark.asyncio
    async def test_extract_only(self, keyword_graph):
        """By default nothing is stored."""
        tool = ExtractTool(keyword_graph, FakeLLM([EXTRACTION]))

        result = await tool(text="Carol works on Project Beta.")

        assert result.success
        assert result.data["stored"] is False
        assert len(result.data["entities"]) == 2
        assert result.data["relationships"][0]["type"] == "WORKS_ON"
        assert result.data["summary"] == "Extracted 2 entities and 1 relationships with 85% confidence."
        assert await keyword_graph.count_entities() == 0

    @pytest.mark.asyncio
    async def test_store_results(self, keyword_graph):
        """store_results persists entities and relationships."""
        tool = ExtractTool(keyword_graph, FakeLLM([EXTRACTION]))

        result = await tool(text="Carol works on Project Beta.", store_results=True)

        assert result.data["stored"] is True
        assert result.data["summary"].endswith("85% confidence and stored in the knowledge graph.")
        assert await keyword_graph.count_entities() == 2
        carol_id = next(e["id"] for e in result.data["entities"] if e["name"] == "Carol")
        rels = await keyword_graph.get_relationships(carol_id)
        assert [r.type for r in rels] == ["WORKS_ON"]

    @pytest.mark.asyncio
    async def test_falls_back_to_graph_llm(self, keyword_graph):
        """Without its own LLM the tool uses the graph's."""
        keyword_graph.llm = FakeLLM([EXTRACTION])

        output = await ExtractTool(keyword_graph).run("Carol works on Project Beta.")

        assert json.loads(output)["confidence"] == 0.85

    @pytest.mark.asyncio
    async def test_no_llm(self, keyword_graph):
        """No LLM anywhere gives a failed result."""
        result = await ExtractTool(keyword_graph)(text="Carol works on Project Beta.")

        assert not result.success
        assert "LLM" in result.error


class TestRegisterGraphTools:

    def test_categories(self, graph):
        """Write tools and read tools are registered separately."""
        registry = ToolRegistry()

        names = register_graph_tools(registry, graph)

        assert names == [
            "graphrag_add_entity",
            "graphrag_add_relationship",
            "graphrag_search",
            "graphrag_get_context",
            "graphrag_extract",
        ]
        assert registry.list(category="write") == ["graphrag_add_entity", "graphrag_add_relationship"]
        assert len(registry.list(category="read")) == 3

    def test_schemas(self, graph):
        """Schemas carry defaults, enums and array item types."""
        registry = ToolRegistry()
        register_graph_tools(registry, graph)

        search = registry.get_schema("graphrag_search")["parameters"]
        assert search["required"] == ["query"]
        assert search["properties"]["search_type"]["enum"] == ["local", "global", "hybrid"]
        assert search["properties"]["entity_types"]["items"] == {"type": "string"}

        add_rel = registry.get_schema("graphrag_add_relationship")["parameters"]
        assert add_rel["properties"]["strength"] == {
            "type": "number",
            "description": "Strength between 0.0 and 1.0",
            "default": 1.0,
        }
