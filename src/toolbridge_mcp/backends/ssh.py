"""SSH backend: runs commands on remote hosts."""

from __future__ import annotations

import getpass
import logging
from typing import Optional

from ..security import ExecutionError, ExecutionLimits
from .base import ExecutionBackend
from .process import ProcessRunner, run_process

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "/bin/bash"

# Host keys are not verified. Targets are ephemeral development hosts whose
# keys change on every rebuild; do not point this backend at production.
SSH_OPTIONS = (
    "-o", "StrictHostKeyChecking=no",
    "-o", "UserKnownHostsFile=/dev/null",
    "-o", "LogLevel=ERROR",
)


def escape_shell_command(cmd: str) -> str:
    """Single-quotes `cmd` for a remote shell, escaping embedded quotes."""
    return "'" + cmd.replace("'", "'\\''") + "'"


def ambient_user() -> Optional[str]:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return None


class SshBackend(ExecutionBackend):
    """Executes commands over ssh. Assumes keys are already set up."""

    def __init__(
        self,
        default_user: Optional[str] = None,
        limits: Optional[ExecutionLimits] = None,
        runner: Optional[ProcessRunner] = None,
    ) -> None:
        self.default_user = default_user or ambient_user()
        self.limits = limits or ExecutionLimits()
        self._runner = runner or run_process

    async def resolve_user(self, user: Optional[str], target: str) -> Optional[str]:
        return user or self.default_user

    async def execute(
        self,
        target: str,
        command: str,
        user: Optional[str] = None,
        shell: Optional[str] = None,
        working_dir: Optional[str] = None,
    ) -> str:
        ssh_user = await self.resolve_user(user, target)

        remote_cmd = escape_shell_command(command)
        if working_dir:
            remote_cmd = escape_shell_command(f"cd {escape_shell_command(working_dir)} && {command}")
        full_cmd = f"{shell or DEFAULT_SHELL} -c {remote_cmd}"

        destination = f"{ssh_user}@{target}" if ssh_user else target
        argv = ["ssh", *SSH_OPTIONS, destination, full_cmd]
        logger.debug("SSH exec: %s", " ".join(argv))

        try:
            return await self._runner(argv, self.limits)
        except ExecutionError as e:
            # Keep the subclass so timeouts and overflows stay distinguishable.
            raise type(e)(f"SSH command failed on {destination}: {e}") from e
