"""ToolBridge MCP - an MCP server that dispatches YAML-defined tools."""

__version__ = "0.1.0"

from .models import RegisteredTool, ToolDefinition, ToolExecutionResult
from .registry import ToolRegistry

__all__ = ["ToolRegistry", "ToolDefinition", "ToolExecutionResult", "RegisteredTool"]
