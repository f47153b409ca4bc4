"""Executor interface shared by every dispatchable tool."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from ..models import ToolExecutionResult


class ToolExecutor(ABC):
    """Performs one tool's operation.

    The registry only ever calls these two methods and never looks at the
    concrete class.
    """

    @abstractmethod
    async def execute(self, args: Mapping[str, Any]) -> ToolExecutionResult:
        """Run the tool. Failures come back as an error envelope."""
        ...

    @abstractmethod
    def validate_arguments(self, args: Mapping[str, Any]) -> None:
        """
        Raises:
            ArgumentValidationError: if `args` cannot be dispatched.
        """
        ...
