"""Data models shared by the registry and executors."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .security import ValidationRule

if TYPE_CHECKING:
    from .executors.base import ToolExecutor

TOOL_TYPE_COMMAND = "command"
TOOL_TYPE_MCP_SERVER = "mcp_server"


class ToolDefinition(BaseModel):
    """One configured tool, as parsed from a tools file.

    Fields for both tool types live on the same record; which ones matter is
    decided by `type`. Unknown keys are ignored.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    description: str = ""
    type: str = TOOL_TYPE_COMMAND
    enabled: bool = True
    input_schema: Optional[dict[str, Any]] = None

    # command
    command_template: Optional[str] = None
    container: Optional[str] = None
    ssh_target: Optional[str] = None
    ssh_user: Optional[str] = None
    user: Optional[str] = None
    working_dir: Optional[str] = None
    shell: Optional[str] = None
    default_args: dict[str, Any] = Field(default_factory=dict)
    disallowed_commands: list[str] = Field(default_factory=list)
    validation_rules: list[ValidationRule] = Field(default_factory=list)

    # mcp_server
    server_url: Optional[str] = None
    forward_args: bool = True
    timeout: float = 10
    auth_username: Optional[str] = None
    auth_password: Optional[str] = None
    auth_token: Optional[str] = None
    auth_token_basic: bool = False
    verify_ssl: bool = True
    expose_remote_tools: bool = False
    tool_prefix: str = ""
    init_timeout: float = 30


class ToolExecutionResult(BaseModel):
    """Uniform outcome of every dispatch."""
    model_config = ConfigDict(frozen=True)

    content: str
    is_error: bool = False

    @classmethod
    def error(cls, content: str) -> "ToolExecutionResult":
        return cls(content=content, is_error=True)


class RemoteToolDefinition(BaseModel):
    """A tool advertised by a remote server's tools/list."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    description: Optional[str] = None
    input_schema: Optional[dict[str, Any]] = Field(None, alias="inputSchema")


@dataclass(frozen=True)
class RegisteredTool:
    """A definition paired with the executor that dispatches it."""
    definition: ToolDefinition
    executor: "ToolExecutor"
    source: str = ""
