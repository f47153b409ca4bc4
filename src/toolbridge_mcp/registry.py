"""
Tool registry: turns tool definitions into executors and dispatches calls.

Loading happens in two phases. Declared tools are registered directly; an
mcp_server definition with expose_remote_tools set is expanded by asking the
remote server for its tool list and registering one bound executor per remote
tool. Both paths end in the same `_register` call, and dispatch never needs to
know which kind of tool it is running.
"""

import asyncio
import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import httpx
from pydantic import ValidationError

from .backends.base import ExecutionBackend
from .backends.docker import ContainerBackend
from .backends.ssh import SshBackend, ambient_user
from .config import BridgeConfig
from .executors.base import ToolExecutor
from .executors.command import CommandToolExecutor
from .executors.mcp_proxy import BoundRemoteToolExecutor, McpProxyExecutor
from .models import (
    TOOL_TYPE_COMMAND,
    TOOL_TYPE_MCP_SERVER,
    RegisteredTool,
    ToolDefinition,
    ToolExecutionResult,
)
from .security import ArgumentValidationError, ConfigError, ToolBridgeError
from .templating import normalize_path_prefix, resolve_env_vars_in_mapping

logger = logging.getLogger(__name__)

ArgPreprocessor = Callable[[Mapping[str, Any]], dict[str, Any]]

# Definition fields that may reference ${ENV} or {DDEV_PROJECT} placeholders.
RESOLVED_FIELDS = (
    "container",
    "ssh_target",
    "ssh_user",
    "user",
    "working_dir",
    "server_url",
    "auth_username",
    "auth_password",
    "auth_token",
)


class ToolRegistry:
    """Owns every dispatchable tool, keyed by name, in load order."""

    def __init__(
        self,
        config: BridgeConfig,
        container_backend: Optional[ExecutionBackend] = None,
        ssh_backend: Optional[ExecutionBackend] = None,
        arg_preprocessor: Optional[ArgPreprocessor] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            config: Bridge settings (project, path roots, limits).
            container_backend: Shared by all container command tools; its caches
                               are the process-wide ones.
            ssh_backend: Shared by all ssh command tools.
            arg_preprocessor: Applied to validated arguments before execution;
                              defaults to host-to-container path rewriting.
            transport: httpx transport handed to every MCP proxy (tests).
        """
        self.config = config
        self.container_backend = container_backend or ContainerBackend(
            limits=config.limits, docker_group=config.docker_group
        )
        self.ssh_backend = ssh_backend or SshBackend(default_user=config.ssh_user, limits=config.limits)
        self._transport = transport
        self._tools: dict[str, RegisteredTool] = {}

        if arg_preprocessor is None:
            host_root = config.host_project_root
            container_root = config.container_project_root

            def arg_preprocessor(args: Mapping[str, Any]) -> dict[str, Any]:
                return normalize_path_prefix(dict(args), host_root, container_root)

        self.arg_preprocessor = arg_preprocessor

    # --- Loading ---

    async def load_tools(
        self,
        definitions: Iterable[Union[Mapping[str, Any], ToolDefinition]],
        source: str = "<inline>",
    ) -> int:
        """Loads one configuration unit's definitions in order. Returns the number of tools registered."""
        loaded = 0
        for definition in definitions:
            loaded += await self.load_single_tool(definition, source=source)
        logger.info("Loaded %d tools from %s", loaded, source)
        return loaded

    async def load_single_tool(
        self,
        raw: Union[Mapping[str, Any], ToolDefinition],
        source: str = "<inline>",
    ) -> int:
        if isinstance(raw, ToolDefinition):
            name, enabled = raw.name, raw.enabled
        else:
            name, enabled = raw.get("name"), raw.get("enabled", True)

        if not name:
            logger.warning("Tool config missing 'name' in %s", source)
            return 0
        if enabled is False:
            logger.info("Tool disabled: %s", name)
            return 0

        definition = self._parse_definition(raw, source)
        if definition is None:
            return 0

        executor = self.create_executor(definition)
        if executor is None:
            logger.warning("Failed to create executor: %s", definition.name)
            return 0

        if isinstance(executor, McpProxyExecutor) and definition.expose_remote_tools:
            return await self.discover_and_bind_remote_tools(definition, executor, source=source)

        return int(self._register(definition, executor, source))

    def _parse_definition(
        self,
        raw: Union[Mapping[str, Any], ToolDefinition],
        source: str,
    ) -> Optional[ToolDefinition]:
        if isinstance(raw, ToolDefinition):
            return raw
        name = raw.get("name")
        data = {k: v for k, v in raw.items() if v is not None}
        data.update(
            resolve_env_vars_in_mapping(
                {k: data[k] for k in RESOLVED_FIELDS if k in data},
                bridge_vars={"DDEV_PROJECT": self.config.ddev_project},
            )
        )
        try:
            return ToolDefinition.model_validate(data)
        except ValidationError as e:
            logger.error("Tool %s in %s: invalid definition: %s", name, source, e)
            return None

    def create_executor(self, definition: ToolDefinition) -> Optional[ToolExecutor]:
        """Builds the executor for `definition`, or logs and returns None."""
        try:
            if definition.type == TOOL_TYPE_COMMAND:
                return self._create_command_executor(definition)
            if definition.type == TOOL_TYPE_MCP_SERVER:
                return self._create_proxy_executor(definition)
            raise ConfigError(f"Unknown tool type: {definition.type}")
        except ToolBridgeError as e:
            logger.error("Error creating executor for %s: %s", definition.name, e)
            return None

    def _create_command_executor(self, definition: ToolDefinition) -> CommandToolExecutor:
        if not definition.command_template:
            raise ConfigError("missing command_template")

        if definition.ssh_target:
            backend = self.ssh_backend
            target = definition.ssh_target
            user = definition.ssh_user or definition.user or self.config.ssh_user or ambient_user()
        elif definition.container:
            backend = self.container_backend
            target = definition.container
            user = definition.user
        else:
            raise ConfigError("missing container or ssh_target")

        return CommandToolExecutor(
            command_template=definition.command_template,
            target=target,
            backend=backend,
            project=self.config.ddev_project,
            user=user,
            shell=definition.shell,
            working_dir=definition.working_dir,
            default_args=definition.default_args,
            disallowed_commands=definition.disallowed_commands,
            validation_rules=definition.validation_rules,
        )

    def _create_proxy_executor(self, definition: ToolDefinition) -> McpProxyExecutor:
        if not definition.server_url:
            raise ConfigError("missing server_url")

        return McpProxyExecutor(
            server_url=definition.server_url,
            forward_args=definition.forward_args,
            timeout=definition.timeout,
            auth_username=definition.auth_username,
            auth_password=definition.auth_password,
            auth_token=definition.auth_token,
            auth_token_basic=definition.auth_token_basic,
            verify_ssl=definition.verify_ssl,
            transport=self._transport,
        )

    async def discover_and_bind_remote_tools(
        self,
        definition: ToolDefinition,
        proxy: McpProxyExecutor,
        source: str = "<inline>",
    ) -> int:
        """Registers one bound executor per tool advertised by the proxy's server."""
        proxy_name = definition.name
        logger.info("Fetching remote tools from: %s", proxy_name)

        try:
            remote_tools = await asyncio.wait_for(
                proxy.fetch_remote_tools(), timeout=definition.init_timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                "Failed to load remote tools from %s: timeout after %gs", proxy_name, definition.init_timeout
            )
            return 0

        if not remote_tools:
            logger.warning("No tools from %s", proxy_name)
            return 0

        count = 0
        for remote in remote_tools:
            if not remote.name:
                continue
            local_name = f"{definition.tool_prefix}{remote.name}"
            bound_definition = ToolDefinition(
                name=local_name,
                description=remote.description or "",
                type=TOOL_TYPE_MCP_SERVER,
                input_schema=remote.input_schema,
                server_url=definition.server_url,
            )
            executor = BoundRemoteToolExecutor(proxy, remote.name)
            if self._register(bound_definition, executor, f"{source}:{proxy_name}"):
                logger.info("Loaded remote tool: %s (from %s)", local_name, remote.name)
                count += 1

        logger.info("Loaded %d tools from %s", count, proxy_name)
        return count

    def _register(self, definition: ToolDefinition, executor: ToolExecutor, source: str) -> bool:
        existing = self._tools.get(definition.name)
        if existing is not None:
            logger.warning(
                "Duplicate tool name '%s' from %s ignored; already registered from %s",
                definition.name,
                source,
                existing.source,
            )
            return False
        self._tools[definition.name] = RegisteredTool(definition=definition, executor=executor, source=source)
        logger.info("Loaded tool: %s", definition.name)
        return True

    # --- Public API ---

    def get_tool_names(self) -> list[str]:
        return list(self._tools)

    def get_tool(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def list_tools(self) -> list[RegisteredTool]:
        """Registered tools in load order."""
        return list(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    async def execute_tool(self, name: str, args: Optional[Mapping[str, Any]] = None) -> ToolExecutionResult:
        """
        Dispatches a call by tool name. Never raises: every outcome, including
        an unknown name or an executor bug, comes back as an envelope.
        """
        registered = self._tools.get(name)
        if registered is None:
            return ToolExecutionResult.error(f"Error: Unknown tool '{name}'")

        args = dict(args or {})
        executor = registered.executor

        try:
            executor.validate_arguments(args)
        except ArgumentValidationError as e:
            return ToolExecutionResult.error(f"Validation error: {e}")
        except Exception as e:
            logger.error("Error validating arguments for %s: %s", name, e)
            return ToolExecutionResult.error(f"Validation error: {e}")

        try:
            processed = self.arg_preprocessor(args)
            return await executor.execute(processed)
        except Exception as e:
            logger.exception("Error executing %s", name)
            return ToolExecutionResult.error(f"Error: {e}")
