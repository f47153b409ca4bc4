import pytest
from mcp.types import TextContent

from toolbridge_mcp.registry import ToolRegistry
from toolbridge_mcp.server import EMPTY_INPUT_SCHEMA, ToolBridgeServer, ToolCallFailed, build_registry

from .conftest import FakeBackend

TOOLS_YAML = """\
tools:
  - name: cat_file
    description: Print a file
    container: ddev-{DDEV_PROJECT}-web
    command_template: cat {path}
    input_schema:
      type: object
      properties:
        path:
          type: string
      required: [path]
  - name: uptime
    ssh_target: host.example
    command_template: uptime
"""


async def make_server(config) -> tuple[ToolBridgeServer, FakeBackend]:
    backend = FakeBackend(output="hello\n")
    registry = ToolRegistry(config, container_backend=backend, ssh_backend=backend)
    await registry.load_tools(
        [
            {"name": "echo", "description": "Echo", "container": "web", "command_template": "echo {text}"},
            {"name": "bare", "container": "web", "command_template": "true"},
        ]
    )
    return ToolBridgeServer(registry), backend


@pytest.mark.asyncio
async def test_list_tools(bridge_config):
    server, _ = await make_server(bridge_config)

    tools = await server.list_tools_impl()

    assert [t.name for t in tools] == ["echo", "bare"]
    assert tools[0].description == "Echo"
    assert tools[1].description == "Tool with no description"
    assert tools[1].inputSchema == EMPTY_INPUT_SCHEMA


@pytest.mark.asyncio
async def test_call_tool_returns_text_content(bridge_config):
    server, backend = await make_server(bridge_config)

    content = await server.call_tool_impl("echo", {"text": "hi"})

    assert content == [TextContent(type="text", text="hello")]
    assert backend.calls[0]["command"] == "echo hi"


@pytest.mark.asyncio
async def test_call_tool_error_envelope_raises(bridge_config):
    server, _ = await make_server(bridge_config)

    with pytest.raises(ToolCallFailed, match="Missing required arguments: text"):
        await server.call_tool_impl("echo", None)

    with pytest.raises(ToolCallFailed, match="Unknown tool 'missing'"):
        await server.call_tool_impl("missing", {})


@pytest.mark.asyncio
async def test_build_registry_from_directory(bridge_config, tmp_path):
    (tmp_path / "site.yml").write_text(TOOLS_YAML, encoding="utf-8")
    (tmp_path / "broken.yml").write_text("tools: [", encoding="utf-8")

    registry = await build_registry(bridge_config)

    assert registry.get_tool_names() == ["cat_file", "uptime"]
    assert registry.get_tool("cat_file").executor.target == "ddev-siteA-web"
    assert registry.get_tool("cat_file").source == "site.yml"


@pytest.mark.asyncio
async def test_build_registry_with_no_tools(bridge_config, caplog):
    registry = await build_registry(bridge_config)

    assert len(registry) == 0
    assert "No tools loaded! Check the tools-config directory." in caplog.messages
