"""
Shared test fixtures.

Nothing here talks to Docker, ssh or the network: backends get a FakeRunner in
place of the real process runner, and MCP proxies get an httpx.MockTransport.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Sequence, Union

import pytest

from toolbridge_mcp.backends.base import ExecutionBackend
from toolbridge_mcp.config import LOG_FORMAT, BridgeConfig
from toolbridge_mcp.security import ExecutionLimits, OwnershipMismatchError


class FakeRunner:
    """Stands in for run_process; records every argv it is given."""

    def __init__(self, handler: Optional[Callable[[list[str]], Union[str, Exception]]] = None) -> None:
        self.calls: list[list[str]] = []
        self.handler = handler or (lambda argv: "")

    async def __call__(self, argv: Sequence[str], limits: ExecutionLimits) -> str:
        self.calls.append(list(argv))
        # Yield so concurrent callers can interleave.
        await asyncio.sleep(0)
        result = self.handler(list(argv))
        if isinstance(result, Exception):
            raise result
        return result


class FakeBackend(ExecutionBackend):
    """Records execute calls instead of running anything."""

    def __init__(
        self,
        output: str = "ok",
        error: Optional[Exception] = None,
        mismatch: bool = False,
    ) -> None:
        self.output = output
        self.error = error
        self.mismatch = mismatch
        self.calls: list[dict[str, Any]] = []
        self.validated: list[tuple[str, str]] = []

    async def execute(self, target, command, user=None, shell=None, working_dir=None) -> str:
        self.calls.append(
            {"target": target, "command": command, "user": user, "shell": shell, "working_dir": working_dir}
        )
        if self.error is not None:
            raise self.error
        return self.output

    async def validate_target(self, target: str, project: str) -> None:
        self.validated.append((target, project))
        if self.mismatch:
            raise OwnershipMismatchError(f'Container "{target}" belongs to "other", not "{project}"')


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def bridge_config(tmp_path) -> BridgeConfig:
    return BridgeConfig(
        tools_config_path=str(tmp_path),
        ddev_project="siteA",
        log_file=None,
        docker_group=None,
    )


@pytest.fixture
def restore_logging():
    """Detaches the handlers configure_logging installs and resets the root level."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler.formatter is not None and handler.formatter._fmt == LOG_FORMAT:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
