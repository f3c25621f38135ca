"""
Agent tools over the knowledge graph.

Example:
    >>> from agentkg.tools import ToolRegistry, register_graph_tools
    >>> registry = ToolRegistry()
    >>> register_graph_tools(registry, graph, llm)
    >>> schemas = registry.get_all_schemas()
"""

from agentkg.tools.base import BaseTool, ParameterType, ToolError, ToolParameter, ToolResult
from agentkg.tools.graph_tools import (
    AddEntityTool,
    AddRelationshipTool,
    ExtractTool,
    GetContextTool,
    SearchTool,
    create_graph_tools,
    register_graph_tools,
)
from agentkg.tools.registry import ToolRegistry

__all__ = [
    "BaseTool",
    "ToolParameter",
    "ParameterType",
    "ToolResult",
    "ToolError",
    "ToolRegistry",
    "AddEntityTool",
    "AddRelationshipTool",
    "SearchTool",
    "GetContextTool",
    "ExtractTool",
    "create_graph_tools",
    "register_graph_tools",
]
