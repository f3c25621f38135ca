"""
Tests for Tool Registry.
"""

from typing import List

import pytest

from agentkg.tools import BaseTool, ParameterType, ToolParameter, ToolRegistry, ToolResult


class SampleTool(BaseTool):
    """Sample tool."""
    name = "sample_tool"
    description = "Sample tool"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [ToolParameter("query", ParameterType.STRING, "Search query")]

    async def execute(self, query: str) -> ToolResult:
        return ToolResult.ok(data={"query": query}, tool_name=self.name)


class AnotherTool(BaseTool):
    """Another sample tool."""
    name = "another_tool"
    description = "Another tool"

    @property
    def parameters(self) -> List[ToolParameter]:
        return []

    async def execute(self) -> ToolResult:
        return ToolResult.ok(data={"status": "ok"}, tool_name=self.name)


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_init(self):
        """New registry is empty."""
        assert len(ToolRegistry()) == 0

    def test_register_tool(self):
        """Register one tool."""
        registry = ToolRegistry()
        registry.register(SampleTool())

        assert "sample_tool" in registry
        assert len(registry) == 1

    def test_register_with_category(self):
        """Register with a category."""
        registry = ToolRegistry()
        registry.register(SampleTool(), category="read")

        assert "read" in registry.list_categories()
        assert registry.list(category="read") == ["sample_tool"]

    def test_register_duplicate_fails(self):
        """Names are unique."""
        registry = ToolRegistry()
        registry.register(SampleTool())

        with pytest.raises(ValueError, match="already registered"):
            registry.register(SampleTool())

    def test_get_and_get_required(self):
        """get returns None for unknown names, get_required raises."""
        registry = ToolRegistry()
        tool = SampleTool()
        registry.register(tool)

        assert registry.get("sample_tool") is tool
        assert registry.get_required("sample_tool") is tool
        assert registry.get("nonexistent") is None
        with pytest.raises(KeyError, match="not found"):
            registry.get_required("nonexistent")

    def test_list_by_category(self):
        """Listing filters by category."""
        registry = ToolRegistry()
        registry.register(SampleTool(), category="read")
        registry.register(AnotherTool(), category="write")

        assert registry.list() == ["sample_tool", "another_tool"]
        assert registry.list(category="write") == ["another_tool"]
        assert registry.list(category="nonexistent") == []

    def test_list_returns_copy(self):
        """Mutating the returned list does not touch the registry."""
        registry = ToolRegistry()
        registry.register(SampleTool(), category="read")

        registry.list(category="read").clear()

        assert registry.list(category="read") == ["sample_tool"]

    def test_unregister(self):
        """Unregister removes the tool and its category entry."""
        registry = ToolRegistry()
        registry.register(SampleTool(), category="read")

        assert registry.unregister("sample_tool") is True
        assert "sample_tool" not in registry
        assert registry.list(category="read") == []
        assert registry.unregister("sample_tool") is False

    def test_get_all_by_category(self):
        """get_all honours the category filter."""
        registry = ToolRegistry()
        tool1 = SampleTool()
        registry.register(tool1, category="read")
        registry.register(AnotherTool(), category="write")

        assert registry.get_all(category="read") == [tool1]
        assert len(registry.get_all()) == 2

    def test_schemas(self):
        """Single and bulk schemas."""
        registry = ToolRegistry()
        registry.register(SampleTool())
        registry.register(AnotherTool())

        assert registry.get_schema("sample_tool")["name"] == "sample_tool"
        assert registry.get_schema("nonexistent") is None
        assert [s["name"] for s in registry.get_all_schemas()] == ["sample_tool", "another_tool"]

    def test_iter(self):
        """Iteration yields tool names."""
        registry = ToolRegistry()
        registry.register(SampleTool())
        registry.register(AnotherTool())

        assert list(registry) == ["sample_tool", "another_tool"]


class TestToolRegistryAsync:
    """Async tests for ToolRegistry."""

    @pytest.mark.asyncio
    async def test_execute(self):
        """Execute a tool by name."""
        registry = ToolRegistry()
        registry.register(SampleTool())

        result = await registry.execute("sample_tool", query="test")

        assert result.success is True
        assert result.data["query"] == "test"

    @pytest.mark.asyncio
    async def test_execute_unknown_tool(self):
        """Unknown tool gives a failed result."""
        result = await ToolRegistry().execute("nonexistent")

        assert result.success is False
        assert "not found" in result.error

    @pytest.mark.asyncio
    async def test_execute_validates(self):
        """Validation still applies through the registry."""
        registry = ToolRegistry()
        registry.register(SampleTool())

        result = await registry.execute("sample_tool")

        assert result.success is False
        assert "Missing required parameter: query" in result.error
