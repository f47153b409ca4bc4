"""Tool executors."""

from .base import ToolExecutor
from .command import CommandToolExecutor
from .mcp_proxy import BoundRemoteToolExecutor, McpProxyExecutor

__all__ = ["ToolExecutor", "CommandToolExecutor", "McpProxyExecutor", "BoundRemoteToolExecutor"]
