"""Security module for ToolBridge MCP tool dispatch."""

import os
import re
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, field_validator

# Characters that must never appear in static shell configuration values.
DANGEROUS_CHARS = (";", "|", "&", ">", "<", "$", "`", "\n", "\r")


class ToolBridgeError(Exception):
    """Base exception for tool dispatch errors."""
    pass


class ConfigError(ToolBridgeError):
    """Malformed or incomplete tool definition."""
    pass


class ArgumentValidationError(ToolBridgeError):
    """Tool arguments were rejected before execution."""
    pass


class MissingArgumentError(ArgumentValidationError):
    """A single template placeholder had no value at render time."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Missing required argument: {name}")


class MissingArgumentsError(ArgumentValidationError):
    """One or more template placeholders are not satisfiable."""

    def __init__(self, names: Sequence[str]) -> None:
        self.names = list(names)
        super().__init__(f"Missing required arguments: {', '.join(self.names)}")


class DisallowedCommandError(ArgumentValidationError):
    """The requested command is on the tool's deny list."""

    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"Command '{command}' is not allowed")


class UnsafeTemplateError(ToolBridgeError):
    """A static configuration value contains a dangerous shell character."""
    pass


class OwnershipMismatchError(ToolBridgeError):
    """An execution target belongs to a different project."""
    pass


class ExecutionError(ToolBridgeError):
    """Command execution errors."""
    pass


class ExecutionTimeoutError(ExecutionError):
    """Command timeout errors."""
    pass


class OutputTooLargeError(ExecutionError):
    """Captured output exceeded the configured limit."""
    pass


class RequestTimeoutError(ToolBridgeError):
    """A proxied JSON-RPC request did not complete in time."""
    pass


class TransportError(ToolBridgeError):
    """HTTP-level failure talking to a remote tool server."""
    pass


class ValidationRule(BaseModel):
    """A regex rule; a match means the value is rejected with `message`."""
    pattern: str = ""
    message: Optional[str] = None

    @field_validator("pattern")
    @classmethod
    def pattern_must_compile(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"Invalid regular expression {value!r}: {e}") from e
        return value


class ExecutionLimits(BaseModel):
    """Upper bounds applied to every spawned process."""
    command_timeout: float = 120
    max_output_bytes: int = 10 * 1024 * 1024


def check_static_safety(values: Iterable[str]) -> None:
    """
    Rejects static configuration values containing shell metacharacters.

    Called once when an executor is built; the values are trusted configuration,
    so there is nothing to re-check per call.

    Raises:
        UnsafeTemplateError: if any value contains a character from DANGEROUS_CHARS.
    """
    for value in values:
        for char in DANGEROUS_CHARS:
            if char in value:
                raise UnsafeTemplateError(
                    f"Dangerous character {char!r} in static value: {value!r}"
                )


def check_rules(value: str, rules: Sequence[ValidationRule]) -> Optional[str]:
    """Returns the message of the first rule matching `value`, or None."""
    for rule in rules:
        if not rule.pattern:
            continue
        if re.search(rule.pattern, value):
            return rule.message or f"Validation failed for pattern: {rule.pattern}"
    return None


def load_execution_limits() -> ExecutionLimits:
    """Loads process execution limits from environment variables."""
    command_timeout_str = os.getenv("COMMAND_TIMEOUT", "120")
    max_output_bytes_str = os.getenv("MAX_OUTPUT_BYTES", str(10 * 1024 * 1024))

    try:
        command_timeout = float(command_timeout_str)
        max_output_bytes = int(max_output_bytes_str)
    except ValueError as e:
        raise ValueError(f"Invalid numeric value in environment variable for execution limits: {e}") from e

    return ExecutionLimits(
        command_timeout=command_timeout,
        max_output_bytes=max_output_bytes,
    )
