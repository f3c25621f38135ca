"""
Tool Base Classes
=================

Base classes for agent tools.

Tools are atomic functions an agent can call through LLM function calling:
- Add entities and relationships to the knowledge graph
- Search it and expand the context around an entity
- Extract graph objects from free text

Architecture:
    Agent -> picks Tool -> runs it -> ToolResult
             (via ToolRegistry)

Every tool:
- Has a name and description (for function calling)
- Declares typed parameters
- Returns a ToolResult whose data is JSON-serializable
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog

log = structlog.get_logger()


class ToolError(Exception):
    """Raised by ``BaseTool.run`` when the tool fails."""


class ParameterType(str, Enum):
    """JSON Schema types supported for tool parameters."""
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


def _matches_type(value: Any, param_type: ParameterType) -> bool:
    # bool is an int subclass; reject it for numeric parameters
    if param_type == ParameterType.STRING:
        return isinstance(value, str)
    if param_type == ParameterType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if param_type == ParameterType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if param_type == ParameterType.BOOLEAN:
        return isinstance(value, bool)
    if param_type == ParameterType.ARRAY:
        return isinstance(value, list)
    return isinstance(value, dict)


@dataclass
class ToolParameter:
    """
    Definition of a tool parameter.

    Used to build the JSON schema for function calling.

    Attributes:
        name: Parameter name
        param_type: Parameter type
        description: Description shown to the LLM
        required: Whether the parameter is mandatory
        default: Value used when omitted
        enum: Allowed values
        items: Element type for arrays
    """
    name: str
    param_type: ParameterType
    description: str
    required: bool = True
    default: Any = None
    enum: Optional[List[str]] = None
    items: Optional[ParameterType] = None

    def to_json_schema(self) -> Dict[str, Any]:
        """Convert to JSON Schema for function calling."""
        schema = {
            "type": self.param_type.value,
            "description": self.description,
        }
        if self.enum:
            schema["enum"] = self.enum
        if self.default is not None:
            schema["default"] = self.default
        if self.items is not None:
            schema["items"] = {"type": self.items.value}
        return schema


@dataclass
class ToolResult:
    """
    Outcome of a tool run.

    Attributes:
        success: Whether the run succeeded
        data: Result payload (shape depends on the tool)
        error: Error message when success=False
        metadata: Extra metadata (timing, source, ...)
        tool_name: Name of the tool that produced the result
    """
    success: bool
    data: Any = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    tool_name: Optional[str] = None

    def __post_init__(self):
        if "timestamp" not in self.metadata:
            self.metadata["timestamp"] = datetime.now().isoformat()

    @classmethod
    def ok(cls, data: Any, tool_name: str = None, **metadata) -> "ToolResult":
        return cls(
            success=True,
            data=data,
            tool_name=tool_name,
            metadata=metadata
        )

    @classmethod
    def fail(cls, error: str, tool_name: str = None, **metadata) -> "ToolResult":
        return cls(
            success=False,
            error=error,
            tool_name=tool_name,
            metadata=metadata
        )

    def to_json(self) -> str:
        """Payload as indented JSON, the form handed back to the LLM."""
        return json.dumps(self.data, indent=2, ensure_ascii=False)


class BaseTool(ABC):
    """
    Abstract base for all tools.

    Subclasses define:
    - name: Unique tool name
    - description: Description for the LLM
    - parameters: List of ToolParameter
    - execute(): The tool logic
    - primary_parameter: Parameter that receives plain-text input in run()

    Example:
        >>> class EchoTool(BaseTool):
        ...     name = "echo"
        ...     description = "Echo the input"
        ...     primary_parameter = "text"
        ...
        ...     @property
        ...     def parameters(self) -> List[ToolParameter]:
        ...         return [ToolParameter("text", ParameterType.STRING, "Text to echo")]
        ...
        ...     async def execute(self, text: str) -> ToolResult:
        ...         return ToolResult.ok({"text": text}, tool_name=self.name)
    """

    name: str = ""
    description: str = ""
    primary_parameter: Optional[str] = None

    def __init__(self):
        if not self.name:
            raise ValueError("Tool must have a name")
        if not self.description:
            raise ValueError("Tool must have a description")

        log.debug(f"Tool initialized: {self.name}")

    @property
    @abstractmethod
    def parameters(self) -> List[ToolParameter]:
        """Parameters accepted by the tool."""
        pass

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """
        Run the tool with already validated parameters.

        Args:
            **kwargs: Parameters as declared in self.parameters

        Returns:
            ToolResult with data or error
        """
        pass

    def validate_params(self, **kwargs) -> Optional[str]:
        """
        Validate parameters before execution.

        Returns:
            None when valid, an error message otherwise
        """
        by_name = {p.name: p for p in self.parameters}

        for param in by_name.values():
            if param.required and kwargs.get(param.name) is None:
                return f"Missing required parameter: {param.name}"

        for name, value in kwargs.items():
            param = by_name.get(name)
            if param is None:
                return f"Unknown parameter: {name}"
            if value is None:
                continue
            if not _matches_type(value, param.param_type):
                return f"Parameter {name} must be of type {param.param_type.value}"
            if param.items is not None and not all(_matches_type(v, param.items) for v in value):
                return f"Parameter {name} must contain only {param.items.value} values"
            if param.enum and value not in param.enum:
                return f"Parameter {name} must be one of {param.enum}"

        return None

    def apply_defaults(self, **kwargs) -> Dict[str, Any]:
        """Fill omitted optional parameters with their declared defaults."""
        params = dict(kwargs)
        for param in self.parameters:
            if params.get(param.name) is None and param.default is not None:
                params[param.name] = param.default
        return params

    async def __call__(self, **kwargs) -> ToolResult:
        """Validate, then execute. Failures become ToolResult.fail."""
        error = self.validate_params(**kwargs)
        if error:
            return ToolResult.fail(error, tool_name=self.name)

        try:
            return await self.execute(**self.apply_defaults(**kwargs))
        except Exception as e:
            log.error(f"Tool {self.name} failed", error=str(e))
            return ToolResult.fail(str(e), tool_name=self.name)

    async def run(self, input: str) -> str:
        """
        Run from raw LLM arguments and return JSON text.

        ``input`` is a JSON object of arguments; anything else is passed as
        the primary parameter.

        Raises:
            ToolError: Arguments are invalid or the tool failed
        """
        kwargs = None
        stripped = (input or "").strip()
        if stripped.startswith("{"):
            try:
                kwargs = json.loads(stripped)
            except json.JSONDecodeError:
                kwargs = None
        if not isinstance(kwargs, dict):
            if self.primary_parameter is None:
                raise ToolError(f"Tool {self.name} expects a JSON object of arguments")
            kwargs = {self.primary_parameter: input}

        result = await self(**kwargs)
        if not result.success:
            raise ToolError(result.error)
        return result.to_json()

    def get_schema(self) -> Dict[str, Any]:
        """
        JSON schema for LLM function calling.

        Compatible with OpenAI/Anthropic function calling format.
        """
        properties = {}
        required = []

        for param in self.parameters:
            properties[param.name] = param.to_json_schema()
            if param.required:
                required.append(param.name)

        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            }
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
