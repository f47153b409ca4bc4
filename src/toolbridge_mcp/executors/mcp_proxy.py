"""
MCP proxy executors: forward tool calls to remote MCP servers over HTTP JSON-RPC.

McpProxyExecutor owns the transport, auth headers and remote tool discovery.
BoundRemoteToolExecutor pins one discovered remote tool name to a shared proxy,
so the registry dispatches proxied tools exactly like local ones.
"""

from __future__ import annotations

import base64
import itertools
import json
import logging
from typing import Any, Mapping, Optional

import httpx
from pydantic import ValidationError

from ..models import RemoteToolDefinition, ToolExecutionResult
from ..security import RequestTimeoutError, TransportError
from .base import ToolExecutor

logger = logging.getLogger(__name__)


def build_auth_headers(
    auth_token: Optional[str] = None,
    auth_token_basic: bool = False,
    auth_username: Optional[str] = None,
    auth_password: Optional[str] = None,
) -> dict[str, str]:
    """Authorization header for the configured credentials; a token wins over username/password."""
    if auth_token:
        if auth_token_basic:
            encoded = base64.b64encode(auth_token.encode()).decode()
            return {"Authorization": f"Basic {encoded}"}
        return {"Authorization": f"Bearer {auth_token}"}
    if auth_username and auth_password:
        encoded = base64.b64encode(f"{auth_username}:{auth_password}".encode()).decode()
        return {"Authorization": f"Basic {encoded}"}
    return {}


class McpProxyExecutor(ToolExecutor):
    """Proxies calls to a single remote MCP endpoint."""

    def __init__(
        self,
        server_url: str,
        forward_args: bool = True,
        timeout: float = 10,
        auth_username: Optional[str] = None,
        auth_password: Optional[str] = None,
        auth_token: Optional[str] = None,
        auth_token_basic: bool = False,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.server_url = server_url
        self.forward_args = forward_args
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.headers = {"Content-Type": "application/json"}
        self.headers.update(
            build_auth_headers(auth_token, auth_token_basic, auth_username, auth_password)
        )
        self._transport = transport
        self._ids = itertools.count(1)

    async def rpc(self, method: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Sends one JSON-RPC request and returns the decoded response body.

        Raises:
            RequestTimeoutError: the request did not finish within `timeout`.
            TransportError: connection failure, non-2xx status or non-JSON body.
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": dict(params or {}),
            "id": next(self._ids),
        }
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                verify=self.verify_ssl,
                transport=self._transport,
            ) as client:
                response = await client.post(self.server_url, headers=self.headers, json=payload)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Request timeout after {self.timeout:g}s") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise TransportError(f"HTTP {response.status_code}: {response.reason_phrase}")
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {self.server_url}: {e}") from e

    async def fetch_remote_tools(self) -> list[RemoteToolDefinition]:
        """Lists the remote server's tools. Any failure yields an empty list."""
        logger.info("Fetching remote tools from %s", self.server_url)
        try:
            response = await self.rpc("tools/list")
        except (RequestTimeoutError, TransportError) as e:
            logger.error("Failed to fetch tools from %s: %s", self.server_url, e)
            return []

        if isinstance(response, list):
            raw_tools = response
        elif isinstance(response, dict):
            raw_tools = response.get("tools")
            if raw_tools is None and isinstance(response.get("result"), dict):
                raw_tools = response["result"].get("tools")
            if not isinstance(raw_tools, list):
                raw_tools = []
        else:
            logger.warning("Unexpected response format from %s", self.server_url)
            return []

        tools: list[RemoteToolDefinition] = []
        for raw in raw_tools:
            if not isinstance(raw, dict):
                logger.warning("Skipping malformed remote tool entry from %s: %r", self.server_url, raw)
                continue
            try:
                tools.append(RemoteToolDefinition.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping invalid remote tool from %s: %s", self.server_url, e)

        logger.info("Fetched %d tools from %s", len(tools), self.server_url)
        return tools

    async def execute(self, args: Mapping[str, Any]) -> ToolExecutionResult:
        return await self.call_tool(args)

    async def call_tool(
        self,
        args: Mapping[str, Any],
        tool_name: Optional[str] = None,
    ) -> ToolExecutionResult:
        """
        Calls the remote server.

        With `tool_name`, issues tools/call for that tool. Without it, a string
        `method` argument (with optional `params`) is forwarded verbatim;
        otherwise, when forward_args is on, the arguments become the params of a
        tools/call request.
        """
        if tool_name:
            method, params = "tools/call", {"name": tool_name, "arguments": dict(args)}
        elif isinstance(args.get("method"), str):
            raw_params = args.get("params")
            method, params = args["method"], raw_params if isinstance(raw_params, dict) else {}
        elif self.forward_args:
            method, params = "tools/call", dict(args)
        else:
            return ToolExecutionResult.error(
                "Error: No 'method' argument given and argument forwarding is disabled"
            )

        try:
            response = await self.rpc(method, params)
        except RequestTimeoutError as e:
            return ToolExecutionResult.error(str(e))
        except TransportError as e:
            logger.error("MCP proxy error: %s", e)
            return ToolExecutionResult.error(f"Error: {e}")

        return parse_response(response)

    def validate_arguments(self, args: Mapping[str, Any]) -> None:
        # Remote servers validate their own input.
        pass


def parse_response(response: Any) -> ToolExecutionResult:
    """
    Normalizes a JSON-RPC response into an envelope.

    Handles a bare value, `{"result": ...}`, `{"content": [{"text": ...}]}` and
    `{"error": {...}}`; anything else is returned as serialized JSON.
    """
    if isinstance(response, str):
        return ToolExecutionResult(content=response)
    if not isinstance(response, dict):
        return ToolExecutionResult(content=json.dumps(response))

    if "result" in response:
        result = response["result"]
        if isinstance(result, str):
            return ToolExecutionResult(content=result)
        if isinstance(result, dict) and ("content" in result or "isError" in result):
            inner = parse_response(result)
            return ToolExecutionResult(
                content=inner.content,
                is_error=inner.is_error or bool(result.get("isError")),
            )
        return ToolExecutionResult(content=json.dumps(result))

    content = response.get("content")
    if isinstance(content, list) and content:
        first = content[0]
        text = first.get("text") if isinstance(first, dict) else None
        return ToolExecutionResult(
            content=text if isinstance(text, str) else json.dumps(response),
            is_error=bool(response.get("isError")),
        )

    if "error" in response:
        error = response["error"]
        message = error.get("message", json.dumps(error)) if isinstance(error, dict) else str(error)
        return ToolExecutionResult.error(f"RPC Error: {message}")

    return ToolExecutionResult(content=json.dumps(response))


class BoundRemoteToolExecutor(ToolExecutor):
    """One discovered remote tool, dispatched through a shared proxy."""

    def __init__(self, proxy: McpProxyExecutor, remote_tool_name: str) -> None:
        self.proxy = proxy
        self.remote_tool_name = remote_tool_name

    async def execute(self, args: Mapping[str, Any]) -> ToolExecutionResult:
        return await self.proxy.call_tool(args, self.remote_tool_name)

    def validate_arguments(self, args: Mapping[str, Any]) -> None:
        pass
