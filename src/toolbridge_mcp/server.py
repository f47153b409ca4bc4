"""MCP server implementation."""

import asyncio
import logging
from typing import Any, Optional, Sequence

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from . import __version__
from .config import BridgeConfig, configure_logging, load_bridge_config
from .loader import load_tool_definitions
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

EMPTY_INPUT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


class ToolCallFailed(Exception):
    """Raised from the call_tool handler so the SDK marks the result isError."""
    pass


class ToolBridgeServer:
    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry
        self.server: Server = Server(
            name="toolbridge-mcp",
            version=__version__,
            instructions="Runs tools defined in YAML files against containers, ssh hosts and remote MCP servers.",
        )

        # Register handlers
        self._register_handlers()

    # --- Handler Registration (Called from __init__) ---
    def _register_handlers(self) -> None:
        """Registers handlers dynamically after self.server is created."""

        @self.server.call_tool()  # type: ignore[misc]
        async def _dispatch_tool_call(
            tool_name: str,
            arguments: Optional[dict[str, Any]],
        ) -> list[TextContent]:
            """Dispatches incoming tool calls to the registry."""
            return await self.call_tool_impl(tool_name, arguments)

        @self.server.list_tools()  # type: ignore[misc]
        async def list_tools_handler() -> list[Tool]:
            """Handles the list_tools request by calling the instance method."""
            return await self.list_tools_impl()

    async def call_tool_impl(
        self,
        tool_name: str,
        arguments: Optional[dict[str, Any]],
    ) -> list[TextContent]:
        logger.info("Calling tool: %s", tool_name)
        result = await self.registry.execute_tool(tool_name, arguments or {})
        if result.is_error:
            raise ToolCallFailed(result.content)
        return [TextContent(type="text", text=result.content)]

    async def list_tools_impl(self) -> list[Tool]:
        """Advertises every registered tool in load order."""
        return [
            Tool(
                name=registered.definition.name,
                description=registered.definition.description or "Tool with no description",
                inputSchema=registered.definition.input_schema or EMPTY_INPUT_SCHEMA,
            )
            for registered in self.registry.list_tools()
        ]

    # --- Server Run ---

    async def run(self) -> None:
        """Run the server using stdio."""
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )


async def build_registry(config: BridgeConfig) -> ToolRegistry:
    """Creates a registry and loads every tools file from the config directory."""
    registry = ToolRegistry(config)
    tool_count = 0
    for source, definitions in load_tool_definitions(config.tools_config_path).items():
        tool_count += await registry.load_tools(definitions, source=source)

    logger.info("Loaded %d tools", tool_count)
    if tool_count == 0:
        logger.warning("No tools loaded! Check the tools-config directory.")
    return registry


async def main(argv: Optional[Sequence[str]] = None) -> None:
    config = load_bridge_config(argv)
    configure_logging(config.log_level, config.log_file)

    logger.info("Starting toolbridge-mcp %s", __version__)
    logger.info("Tools config path: %s", config.tools_config_path)
    logger.info("DDEV project: %s", config.ddev_project)

    registry = await build_registry(config)
    server = ToolBridgeServer(registry)
    logger.info("MCP server configured with %d tools", len(registry))
    await server.run()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
