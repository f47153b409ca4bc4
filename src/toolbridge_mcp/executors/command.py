"""Command tools: render a shell template and run it on a backend."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from ..backends.base import ExecutionBackend
from ..backends.docker import WILDCARD_PROJECT
from ..models import ToolExecutionResult
from ..security import (
    ArgumentValidationError,
    DisallowedCommandError,
    ExecutionError,
    MissingArgumentError,
    MissingArgumentsError,
    OwnershipMismatchError,
    ValidationRule,
    check_rules,
    check_static_safety,
)
from ..templating import placeholders, substitute
from .base import ToolExecutor

logger = logging.getLogger(__name__)

DEFAULT_USER = "www-data"
DEFAULT_SHELL = "/bin/bash"


class CommandToolExecutor(ToolExecutor):
    """Binds a command template, a backend and validation rules into one tool."""

    def __init__(
        self,
        command_template: str,
        target: str,
        backend: ExecutionBackend,
        project: str = WILDCARD_PROJECT,
        user: Optional[str] = None,
        shell: Optional[str] = None,
        working_dir: Optional[str] = None,
        default_args: Optional[Mapping[str, Any]] = None,
        disallowed_commands: Optional[Iterable[str]] = None,
        validation_rules: Optional[Sequence[ValidationRule]] = None,
    ) -> None:
        """
        Raises:
            UnsafeTemplateError: if the shell contains a dangerous character.
        """
        self.command_template = command_template
        self.target = target
        self.backend = backend
        self.project = project
        self.user = user or DEFAULT_USER
        self.shell = shell or DEFAULT_SHELL
        self.working_dir = working_dir
        self.default_args = dict(default_args or {})
        self.disallowed_commands = frozenset(disallowed_commands or ())
        self.validation_rules = list(validation_rules or ())
        self._placeholders = placeholders(command_template)

        check_static_safety([self.shell, "-c"])

    def validate_arguments(self, args: Mapping[str, Any]) -> None:
        rule_error = check_rules(
            json.dumps(args, separators=(",", ":"), default=str), self.validation_rules
        )
        if rule_error:
            raise ArgumentValidationError(rule_error)

        provided = set(self.default_args) | set(args)
        missing = [name for name in self._placeholders if name not in provided]
        if missing:
            raise MissingArgumentsError(missing)

    def _check_disallowed(self, args: Mapping[str, Any]) -> None:
        command = args.get("command")
        if isinstance(command, str) and command in self.disallowed_commands:
            logger.warning("Blocked disallowed command: %s", command)
            raise DisallowedCommandError(command)

    async def execute(self, args: Mapping[str, Any]) -> ToolExecutionResult:
        merged = {**self.default_args, **args}

        try:
            self._check_disallowed(merged)
            rendered = substitute(self.command_template, merged)
        except (DisallowedCommandError, MissingArgumentError) as e:
            return ToolExecutionResult.error(f"Error: {e}")

        rule_error = check_rules(rendered, self.validation_rules)
        if rule_error:
            return ToolExecutionResult.error(f"Validation error: {rule_error}")

        try:
            user = await self.backend.resolve_user(self.user, self.target)
        except ExecutionError as e:
            return ToolExecutionResult.error(f"Execution failed: {e}")

        try:
            await self.backend.validate_target(self.target, self.project)
        except OwnershipMismatchError as e:
            # Mismatch is reported but does not block dispatch.
            logger.warning("Container validation: %s", e)

        logger.info("EXEC: %s as %s: %s -c ...", self.target, user, self.shell)
        try:
            output = await self.backend.execute(
                self.target,
                rendered,
                user=user,
                shell=self.shell,
                working_dir=self.working_dir,
            )
        except ExecutionError as e:
            return ToolExecutionResult.error(f"Execution failed: {e}")

        return ToolExecutionResult(content=output.strip())
