"""
Tool Registry
=============

Name-indexed collection of tools.

Example:
    >>> registry = ToolRegistry()
    >>> register_graph_tools(registry, graph, llm)
    >>>
    >>> tool = registry.get("graphrag_search")
    >>> result = await tool(query="Alice")
    >>>
    >>> # Schemas for function calling
    >>> schemas = registry.get_all_schemas()
"""

from typing import Any, Dict, Iterator, List, Optional

import structlog

from agentkg.tools.base import BaseTool, ToolResult

log = structlog.get_logger()


class ToolRegistry:
    """
    Registry of the tools available to an agent.

    Tools can be grouped by category ("write", "read", ...).
    """

    def __init__(self):
        self._tools: Dict[str, BaseTool] = {}
        self._categories: Dict[str, List[str]] = {}

    def register(self, tool: BaseTool, category: Optional[str] = None) -> None:
        """
        Add a tool.

        Raises:
            ValueError: A tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")

        self._tools[tool.name] = tool
        if category:
            self._categories.setdefault(category, []).append(tool.name)

        log.info(f"Tool registered: {tool.name}", category=category)

    def unregister(self, name: str) -> bool:
        """Remove a tool. Returns False when it was not registered."""
        if name not in self._tools:
            return False

        del self._tools[name]
        for tools in self._categories.values():
            if name in tools:
                tools.remove(name)

        log.info(f"Tool unregistered: {name}")
        return True

    def get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def get_required(self, name: str) -> BaseTool:
        """
        Raises:
            KeyError: Tool not found
        """
        if name not in self._tools:
            raise KeyError(f"Tool '{name}' not found in registry")
        return self._tools[name]

    def list(self, category: Optional[str] = None) -> List[str]:
        if category:
            return list(self._categories.get(category, []))
        return list(self._tools.keys())

    def list_categories(self) -> List[str]:
        return list(self._categories.keys())

    def get_all(self, category: Optional[str] = None) -> List[BaseTool]:
        return [self._tools[n] for n in self.list(category)]

    def get_schema(self, name: str) -> Optional[Dict[str, Any]]:
        tool = self.get(name)
        if tool:
            return tool.get_schema()
        return None

    def get_all_schemas(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        """Schemas of all tools, ready to hand to an LLM for function calling."""
        return [t.get_schema() for t in self.get_all(category)]

    async def execute(self, name: str, **kwargs) -> ToolResult:
        """Run a tool by name; an unknown name gives a failed result."""
        tool = self.get(name)
        if not tool:
            return ToolResult.fail(f"Tool '{name}' not found")

        return await tool(**kwargs)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools.keys())
